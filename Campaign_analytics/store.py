"""Persistence against the hosted Supabase backend.

The store wraps an injected ``supabase.Client`` so callers (and tests) decide
which backend is used. Reads that fail are logged and return empty results, so
a broken connection renders as "no data" rather than an error. Writes raise
:class:`BackendError` so the caller can tell the user their change was lost.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import pandas as pd
from supabase import Client, create_client

from Campaign_analytics.anomaly import Anomaly
from Campaign_analytics.config import BackendSettings, CsvSchema
from Campaign_analytics.data_loader import empty_campaign_frame, normalize_rows
from Campaign_analytics.errors import BackendError, PacingError
from Campaign_analytics.pacing import CampaignRenewal, ContractTerms, RenewalStatus

logger = logging.getLogger(__name__)

CAMPAIGN_TABLE = "campaign_data"
ANOMALY_TABLE = "campaign_anomalies"
CONTRACT_TABLE = "contract_terms"
ACTIVITY_TABLE = "activity_log"
RENEWAL_TABLE = "campaign_renewals"
COLLECTIONS = ("daily_priorities", "announcements", "team_resources")

_STORED_ROW_SCHEMA = CsvSchema(
    date=("date",),
    campaign_name=("campaign_order_name",),
    impressions=("impressions",),
    clicks=("clicks",),
    revenue=("revenue",),
    spend=("spend",),
    transactions=("transactions",),
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _campaign_day_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    dated = frame.dropna(subset=["date"]).copy()
    if dated.empty:
        return []
    dated["date"] = pd.to_datetime(dated["date"]).dt.normalize()
    metrics = ["impressions", "clicks", "revenue", "spend", "transactions"]
    summed = dated.groupby(["date", "campaign_name"], sort=True)[metrics].sum().reset_index()
    return [
        {
            "date": row["date"].date().isoformat(),
            "campaign_order_name": row["campaign_name"],
            "impressions": int(row["impressions"]),
            "clicks": int(row["clicks"]),
            "revenue": float(row["revenue"]),
            "spend": float(row["spend"]),
            "transactions": int(row["transactions"]),
        }
        for row in summed.to_dict(orient="records")
    ]


class CampaignStore:
    """Table-level operations used by the dashboard."""

    def __init__(self, client: Client, page_size: int = 1000) -> None:
        self.client = client
        self.page_size = max(int(page_size), 1)

    @classmethod
    def from_env(cls, settings: BackendSettings | None = None) -> "CampaignStore":
        settings = settings or BackendSettings()
        url = os.environ.get(settings.url_env)
        key = os.environ.get(settings.key_env)
        if not url or not key:
            raise BackendError(f"{settings.url_env} and {settings.key_env} must be set to use the backend")
        return cls(create_client(url, key), page_size=settings.page_size)

    # -- generic helpers -------------------------------------------------

    def _select_all(
        self, table: str, columns: str = "*", order: Optional[str] = None, *, strict: bool = False
    ) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        start = 0
        try:
            while True:
                query = self.client.table(table).select(columns)
                if order:
                    query = query.order(order)
                response = query.range(start, start + self.page_size - 1).execute()
                page = response.data or []
                rows.extend(page)
                if len(page) < self.page_size:
                    break
                start += self.page_size
        except Exception as exc:
            logger.error("Failed to read %s: %s", table, exc)
            if strict:
                raise BackendError(f"Failed to read {table}: {exc}") from exc
            return []
        return rows

    def _write(self, table: str, action: str, operation) -> List[Dict[str, Any]]:
        try:
            response = operation.execute()
        except Exception as exc:
            logger.error("Failed to %s %s: %s", action, table, exc)
            raise BackendError(f"Failed to {action} {table}: {exc}") from exc
        return response.data or []

    def _chunks(self, records: Sequence[Dict[str, Any]]) -> Iterable[Sequence[Dict[str, Any]]]:
        for start in range(0, len(records), self.page_size):
            yield records[start : start + self.page_size]

    # -- campaign rows ---------------------------------------------------

    def fetch_campaign_rows(self) -> pd.DataFrame:
        records = self._select_all(CAMPAIGN_TABLE, order="date")
        if not records:
            return empty_campaign_frame()
        return normalize_rows(pd.DataFrame(records), _STORED_ROW_SCHEMA).frame

    def upsert_campaign_rows(self, frame: pd.DataFrame) -> int:
        """Write one record per campaign-day; a campaign-day already stored is overwritten.

        Repeated campaign-days in ``frame`` are summed first; one upsert batch
        may not touch the same conflict key twice.
        """

        return self._upsert_campaign_records(_campaign_day_records(frame))

    def _upsert_campaign_records(self, records: List[Dict[str, Any]]) -> int:
        for chunk in self._chunks(records):
            self._write(
                CAMPAIGN_TABLE,
                "upsert",
                self.client.table(CAMPAIGN_TABLE).upsert(list(chunk), on_conflict="date,campaign_order_name"),
            )
        logger.info("Stored %d campaign rows", len(records))
        return len(records)

    def _delete_stale_campaign_days(self, kept: Set[Tuple[str, str]]) -> int:
        stale: Dict[str, List[str]] = {}
        for record in self._select_all(CAMPAIGN_TABLE, "date,campaign_order_name", strict=True):
            day = str(record.get("date"))[:10]
            name = str(record.get("campaign_order_name"))
            if (day, name) not in kept:
                stale.setdefault(name, []).append(day)
        for name, days in stale.items():
            self._write(
                CAMPAIGN_TABLE,
                "delete",
                self.client.table(CAMPAIGN_TABLE).delete().eq("campaign_order_name", name).in_("date", days),
            )
        return sum(len(days) for days in stale.values())

    def replace_campaign_rows(self, frame: pd.DataFrame) -> int:
        """Make the stored rows match ``frame``.

        New rows are written before stale ones are removed, so a failed write
        leaves the previous data in place.
        """

        records = _campaign_day_records(frame)
        count = self._upsert_campaign_records(records)
        kept = {(record["date"], record["campaign_order_name"]) for record in records}
        removed = self._delete_stale_campaign_days(kept)
        self.log_activity("campaign_data_upload", {"rows": count, "removed": removed})
        return count

    # -- anomalies -------------------------------------------------------

    def fetch_anomaly_records(self) -> List[Dict[str, Any]]:
        return self._select_all(ANOMALY_TABLE, order="date_detected")

    def sync_anomalies(self, anomalies: Iterable[Anomaly]) -> int:
        """Insert candidates not stored yet; stored ones keep their flags."""

        existing = {
            (str(record.get("campaign_name")), str(record.get("anomaly_type")), str(record.get("date_detected"))[:10])
            for record in self.fetch_anomaly_records()
        }
        fresh = [anomaly.to_record() for anomaly in anomalies if anomaly.key not in existing]
        for record in fresh:
            record.pop("id", None)
        for chunk in self._chunks(fresh):
            self._write(ANOMALY_TABLE, "insert", self.client.table(ANOMALY_TABLE).insert(list(chunk)))
        return len(fresh)

    def set_anomaly_ignored(self, anomaly_id: str, ignored: bool = True) -> None:
        self._write(
            ANOMALY_TABLE,
            "update",
            self.client.table(ANOMALY_TABLE).update({"is_ignored": bool(ignored)}).eq("id", anomaly_id),
        )

    def set_anomaly_duration(self, anomaly_id: str, days: Optional[int]) -> None:
        if days is not None and not 1 <= int(days) <= 30:
            raise ValueError("custom_duration must be between 1 and 30 days")
        self._write(
            ANOMALY_TABLE,
            "update",
            self.client.table(ANOMALY_TABLE).update({"custom_duration": days}).eq("id", anomaly_id),
        )

    # -- contract terms --------------------------------------------------

    def fetch_contract_terms(self) -> List[ContractTerms]:
        terms: List[ContractTerms] = []
        for record in self._select_all(CONTRACT_TABLE, order="campaign_name"):
            try:
                terms.append(ContractTerms.from_record(record))
            except PacingError as exc:
                logger.warning("Ignoring stored contract terms: %s", exc)
        return terms

    def upload_contract_terms(self, terms: Iterable[ContractTerms], clear_first: bool = True) -> int:
        records = [item.to_record() for item in terms]
        if clear_first:
            self._write(
                CONTRACT_TABLE,
                "clear",
                self.client.table(CONTRACT_TABLE).delete().neq("campaign_name", ""),
            )
        for chunk in self._chunks(records):
            self._write(
                CONTRACT_TABLE,
                "upsert",
                self.client.table(CONTRACT_TABLE).upsert(list(chunk), on_conflict="campaign_name"),
            )
        self.log_activity("contract_terms_upload", {"campaigns": len(records), "cleared": clear_first})
        return len(records)

    # -- renewals --------------------------------------------------------

    def fetch_renewals(self) -> List[CampaignRenewal]:
        renewals: List[CampaignRenewal] = []
        for record in self._select_all(RENEWAL_TABLE, order="campaign_order_name"):
            try:
                renewals.append(CampaignRenewal.from_record(record))
            except PacingError as exc:
                logger.warning("Ignoring stored renewal: %s", exc)
        return renewals

    def set_renewal_status(
        self,
        campaign_name: str,
        status: RenewalStatus | str,
        *,
        notes: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> CampaignRenewal:
        """Record the renewal status for a campaign, creating its record on first use."""

        status = RenewalStatus(status)
        changes: Dict[str, Any] = {
            "renewal_status": status.value,
            "status_updated_by": updated_by,
            "status_updated_at": _now(),
        }
        if notes is not None:
            changes["notes"] = notes

        existing = self._write(
            RENEWAL_TABLE,
            "read",
            self.client.table(RENEWAL_TABLE).select("*").eq("campaign_order_name", campaign_name).limit(1),
        )
        if existing:
            rows = self._write(
                RENEWAL_TABLE,
                "update",
                self.client.table(RENEWAL_TABLE).update(changes).eq("campaign_order_name", campaign_name),
            )
        else:
            rows = self._write(
                RENEWAL_TABLE,
                "insert",
                self.client.table(RENEWAL_TABLE).insert({"campaign_order_name": campaign_name, **changes}),
            )
        self.log_activity(
            "renewal_status_changed",
            {"campaign_name": campaign_name, "renewal_status": status.value, "updated_by": updated_by},
        )
        return CampaignRenewal.from_record(rows[0] if rows else {"campaign_order_name": campaign_name, **changes})

    # -- activity log and team collections -------------------------------

    def log_activity(self, action: str, details: Optional[Mapping[str, Any]] = None) -> None:
        self._write(
            ACTIVITY_TABLE,
            "insert",
            self.client.table(ACTIVITY_TABLE).insert(
                {"action": action, "details": dict(details or {}), "created_at": _now()}
            ),
        )

    def fetch_activity(self, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            response = (
                self.client.table(ACTIVITY_TABLE).select("*").order("created_at", desc=True).limit(limit).execute()
            )
        except Exception as exc:
            logger.error("Failed to read %s: %s", ACTIVITY_TABLE, exc)
            return []
        return response.data or []

    @staticmethod
    def _collection(name: str) -> str:
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection {name!r}; expected one of {', '.join(COLLECTIONS)}")
        return name

    def fetch_collection(self, name: str) -> List[Dict[str, Any]]:
        return self._select_all(self._collection(name), order="created_at")

    def add_item(self, name: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        table = self._collection(name)
        payload = {**record, "created_at": record.get("created_at") or _now()}
        rows = self._write(table, "insert", self.client.table(table).insert(payload))
        return rows[0] if rows else payload

    def update_item(self, name: str, item_id: str, changes: Mapping[str, Any]) -> None:
        table = self._collection(name)
        self._write(table, "update", self.client.table(table).update(dict(changes)).eq("id", item_id))

    def delete_item(self, name: str, item_id: str) -> None:
        table = self._collection(name)
        self._write(table, "delete", self.client.table(table).delete().eq("id", item_id))
