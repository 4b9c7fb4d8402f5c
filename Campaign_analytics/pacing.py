"""Contract terms and impression pacing against them."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Literal, Mapping, Optional

import pandas as pd

from Campaign_analytics.data_loader import CsvSource, match_headers, read_campaign_csv
from Campaign_analytics.dates import parse_date_string
from Campaign_analytics.errors import CsvImportError, PacingError

logger = logging.getLogger(__name__)

PacingStatus = Literal["on-target", "minor", "moderate", "major"]

CONTRACT_SYNONYMS: Dict[str, tuple[str, ...]] = {
    "campaign_name": ("name", "campaign name", "campaign", "campaign order name"),
    "start_date": ("start date", "startdate", "flight start"),
    "end_date": ("end date", "enddate", "flight end"),
    "budget": ("budget", "total budget"),
    "cpm": ("cpm", "rate"),
    "impressions_goal": ("impressions goal", "goal impressions", "target impressions", "impressions target"),
}
_CONTRACT_LABELS = {"campaign_name": "Campaign Name", "start_date": "Start Date", "end_date": "End Date"}


@dataclass(slots=True)
class ContractTerms:
    campaign_name: str
    start_date: date
    end_date: date
    budget: Optional[float] = None
    cpm: Optional[float] = None
    impressions_goal: Optional[int] = None

    def to_record(self) -> Dict[str, object]:
        return {
            "campaign_name": self.campaign_name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "budget": self.budget,
            "cpm": self.cpm,
            "impressions_goal": self.impressions_goal,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> "ContractTerms":
        start = parse_date_string(record.get("start_date"))
        end = parse_date_string(record.get("end_date"))
        if start is None or end is None:
            raise PacingError(f"Contract terms for {record.get('campaign_name')!r} have invalid dates")
        goal = parse_money(record.get("impressions_goal"))
        return cls(
            campaign_name=str(record.get("campaign_name", "")).strip(),
            start_date=start,
            end_date=end,
            budget=parse_money(record.get("budget")),
            cpm=parse_money(record.get("cpm")),
            impressions_goal=int(round(goal)) if goal is not None else None,
        )


@dataclass(slots=True)
class CampaignPacing:
    campaign_name: str
    budget: float
    cpm: float
    impressions_goal: int
    start_date: date
    end_date: date
    reference_date: date
    total_days: int
    days_into_campaign: int
    days_until_end: int
    expected_impressions: float
    actual_impressions: float
    actual_spend: float
    current_pacing: float
    remaining_impressions: float
    remaining_average_needed: float
    yesterday_impressions: float
    yesterday_vs_needed: float

    @property
    def completion_percentage(self) -> float:
        if self.total_days <= 0:
            return 0.0
        return min(100.0, max(0.0, self.days_into_campaign / self.total_days * 100.0))

    @property
    def status(self) -> PacingStatus:
        return pacing_status(self.current_pacing)

    def as_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["completion_percentage"] = self.completion_percentage
        payload["status"] = self.status
        return payload


def parse_money(value: object) -> Optional[float]:
    """Parse ``$1,234.50`` style cells; blank or unreadable values give ``None``."""

    if value is None:
        return None
    if isinstance(value, (int, float)):
        return None if pd.isna(value) else float(value)
    text = str(value).replace("$", "").replace(",", "").strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def pacing_status(current_pacing: float) -> PacingStatus:
    percent = current_pacing * 100
    if 95 <= percent <= 105:
        return "on-target"
    if 85 <= percent <= 115:
        return "minor"
    if 70 <= percent <= 130:
        return "moderate"
    return "major"


def load_contract_terms(source: CsvSource) -> List[ContractTerms]:
    """Read a contract-terms CSV.

    Name, start date and end date columns are required; budget, CPM and
    impressions goal are optional and stripped of ``$`` and ``,``. Rows without a
    name or with unreadable flight dates are skipped with a warning.
    """

    raw = read_campaign_csv(source)
    matched = match_headers(raw.columns, CONTRACT_SYNONYMS)
    missing = [label for key, label in _CONTRACT_LABELS.items() if key not in matched]
    if missing:
        raise CsvImportError(f"Required columns missing: {', '.join(missing)}", missing_columns=missing)

    terms: List[ContractTerms] = []
    for position, row in enumerate(raw.to_dict(orient="records"), start=2):
        record = {key: row.get(header) for key, header in matched.items()}
        name = str(record.get("campaign_name") or "").strip()
        if not name:
            continue
        try:
            terms.append(ContractTerms.from_record({**record, "campaign_name": name}))
        except PacingError as exc:
            logger.warning("Skipping contract terms on line %d: %s", position, exc)
    logger.info("Loaded contract terms for %d campaigns", len(terms))
    return terms


def _distinct_dates(frame: pd.DataFrame) -> List[date]:
    if frame.empty:
        return []
    dates = pd.to_datetime(frame["date"], errors="coerce").dropna().dt.normalize().unique()
    return sorted((pd.Timestamp(value).date() for value in dates), reverse=True)


def reference_date_for(frame: pd.DataFrame, fallback: date | None = None) -> date:
    """Second most recent delivery date, else the only one, else ``fallback`` or today.

    The latest day is usually still accumulating, so pacing is measured through
    the day before it.
    """

    dates = _distinct_dates(frame)
    if len(dates) >= 2:
        return dates[1]
    if dates:
        return dates[0]
    return fallback or date.today()


def calculate_campaign_pacing(
    terms: ContractTerms,
    delivery: pd.DataFrame,
    global_reference_date: date | None = None,
) -> CampaignPacing:
    if terms.budget is None or terms.cpm is None or terms.impressions_goal is None:
        raise PacingError(f"Missing budget, CPM or impressions goal for {terms.campaign_name!r}")
    if terms.end_date < terms.start_date:
        raise PacingError(f"End date precedes start date for {terms.campaign_name!r}")

    rows = delivery.loc[delivery["campaign_name"] == terms.campaign_name] if not delivery.empty else delivery
    rows = rows.assign(date=pd.to_datetime(rows["date"], errors="coerce").dt.normalize()).dropna(subset=["date"])
    reference = reference_date_for(rows, global_reference_date)

    goal = int(terms.impressions_goal)
    total_days = (terms.end_date - terms.start_date).days + 1
    days_into = max(0, min((reference - terms.start_date).days + 1, total_days))
    days_until_end = max(0, (terms.end_date - reference).days)
    expected = goal / total_days * days_into

    through = rows.loc[rows["date"] <= pd.Timestamp(reference)]
    actual = float(pd.to_numeric(through["impressions"], errors="coerce").fillna(0).sum())
    spend = float(pd.to_numeric(through["spend"], errors="coerce").fillna(0).sum()) if "spend" in through else 0.0
    on_reference = through.loc[through["date"] == pd.Timestamp(reference)]
    yesterday = float(pd.to_numeric(on_reference["impressions"], errors="coerce").fillna(0).sum())

    remaining = max(0.0, goal - actual)
    remaining_average = remaining / days_until_end if days_until_end > 0 else 0.0

    return CampaignPacing(
        campaign_name=terms.campaign_name,
        budget=float(terms.budget),
        cpm=float(terms.cpm),
        impressions_goal=goal,
        start_date=terms.start_date,
        end_date=terms.end_date,
        reference_date=reference,
        total_days=total_days,
        days_into_campaign=days_into,
        days_until_end=days_until_end,
        expected_impressions=expected,
        actual_impressions=actual,
        actual_spend=spend,
        current_pacing=actual / expected if expected > 0 else 0.0,
        remaining_impressions=remaining,
        remaining_average_needed=remaining_average,
        yesterday_impressions=yesterday,
        yesterday_vs_needed=yesterday / remaining_average if remaining_average > 0 else 0.0,
    )


def process_campaigns(
    contract_terms: Iterable[ContractTerms],
    delivery: pd.DataFrame,
    reference_frame: pd.DataFrame | None = None,
) -> List[CampaignPacing]:
    """Pace every contract that has delivery rows; others are logged and skipped.

    ``reference_frame`` (usually the unfiltered upload) supplies the global
    reference date used for campaigns without their own dates.
    """

    global_reference = reference_date_for(reference_frame if reference_frame is not None else delivery)
    delivered = set(delivery["campaign_name"].astype(str)) if not delivery.empty else set()

    results: List[CampaignPacing] = []
    skipped: List[str] = []
    for terms in contract_terms:
        if terms.campaign_name not in delivered:
            skipped.append(terms.campaign_name)
            continue
        try:
            results.append(calculate_campaign_pacing(terms, delivery, global_reference))
        except PacingError as exc:
            logger.warning("Skipping pacing for %s: %s", terms.campaign_name, exc)
            skipped.append(terms.campaign_name)
    if skipped:
        logger.warning("No pacing computed for %d campaigns: %s", len(skipped), ", ".join(skipped[:10]))
    return results


def pacing_to_frame(pacing: Iterable[CampaignPacing]) -> pd.DataFrame:
    rows = [item.as_dict() for item in pacing]
    return pd.DataFrame(rows)


class RenewalStatus(str, Enum):
    AWAITING_CONFIRMATION = "Awaiting Confirmation"
    CONFIRMED_PENDING_SUBMISSION = "Confirmed - Pending Submission"
    SUBMITTED = "Renewal Submitted"
    ACTIVATED = "Renewal Activated"
    NOT_RENEWING = "Not Renewing"


@dataclass(slots=True)
class CampaignRenewal:
    """Renewal status a team member recorded for one campaign."""

    campaign_name: str
    renewal_status: RenewalStatus
    notes: Optional[str] = None
    status_updated_by: Optional[str] = None
    status_updated_at: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> "CampaignRenewal":
        try:
            status = RenewalStatus(str(record.get("renewal_status")))
        except ValueError as exc:
            raise PacingError(
                f"Unknown renewal status {record.get('renewal_status')!r} for {record.get('campaign_order_name')!r}"
            ) from exc
        return cls(
            campaign_name=str(record.get("campaign_order_name", "")).strip(),
            renewal_status=status,
            notes=record.get("notes") or None,
            status_updated_by=record.get("status_updated_by") or None,
            status_updated_at=record.get("status_updated_at") or None,
            id=str(record["id"]) if record.get("id") is not None else None,
        )


def attach_renewal_status(pacing: pd.DataFrame, renewals: Iterable[CampaignRenewal]) -> pd.DataFrame:
    """Add ``renewal_status`` and ``renewal_notes``; campaigns without a record stay blank."""

    by_campaign = {item.campaign_name: item for item in renewals}
    result = pacing.copy()
    if result.empty:
        return result
    names = result["campaign_name"]
    result["renewal_status"] = names.map(
        lambda name: by_campaign[name].renewal_status.value if name in by_campaign else ""
    )
    result["renewal_notes"] = names.map(lambda name: (by_campaign[name].notes or "") if name in by_campaign else "")
    return result
