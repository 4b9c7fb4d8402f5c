"""Day-over-day anomaly detection for campaign delivery.

Three detectors walk each campaign's days in ascending order:

* impression change: ``|pct_change| >= 20%`` against a non-zero previous day
* transaction drop: a fall of ``>= 90%`` against a non-zero previous day
* zero transactions: ``>= 2`` consecutive zero-transaction days, reported once
  on the last day of the streak

The most recent date in the dataset is always left out because its numbers are
usually still accumulating. Detection regenerates the full candidate set on
every run; only the ignore flag and custom duration are persisted elsewhere and
merged back with :func:`apply_suppressions`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from Campaign_analytics.campaigns import selected_campaigns
from Campaign_analytics.config import AnomalyThresholds, FilterOptions
from Campaign_analytics.data_loader import is_totals_row
from Campaign_analytics.dates import parse_date_string
from Campaign_analytics.trends import pct_change

logger = logging.getLogger(__name__)


class AnomalyType(str, Enum):
    IMPRESSION_CHANGE = "impression_change"
    TRANSACTION_DROP = "transaction_drop"
    TRANSACTION_ZERO = "transaction_zero"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


ANOMALY_DISPLAY_NAMES: Dict[AnomalyType, str] = {
    AnomalyType.IMPRESSION_CHANGE: "Impression Change",
    AnomalyType.TRANSACTION_DROP: "Transaction Drop",
    AnomalyType.TRANSACTION_ZERO: "Zero Transactions",
}

_FRAME_COLUMNS = [
    "date_detected",
    "campaign_name",
    "anomaly_type",
    "severity",
    "message",
    "percentage_change",
    "consecutive_days",
    "is_ignored",
    "custom_duration",
]


@dataclass(slots=True)
class Anomaly:
    campaign_name: str
    anomaly_type: AnomalyType
    date_detected: date
    severity: Severity
    details: Dict[str, float] = field(default_factory=dict)
    is_ignored: bool = False
    custom_duration: Optional[int] = None
    id: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.campaign_name, self.anomaly_type.value, self.date_detected.isoformat())

    def to_record(self) -> Dict[str, object]:
        record: Dict[str, object] = {
            "campaign_name": self.campaign_name,
            "anomaly_type": self.anomaly_type.value,
            "date_detected": self.date_detected.isoformat(),
            "severity": self.severity.value,
            "details": dict(self.details),
            "is_ignored": self.is_ignored,
            "custom_duration": self.custom_duration,
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> "Anomaly":
        detected = parse_date_string(record.get("date_detected"))
        if detected is None:
            raise ValueError(f"Anomaly record has no usable date_detected: {record!r}")
        duration = record.get("custom_duration")
        return cls(
            campaign_name=str(record.get("campaign_name", "")),
            anomaly_type=AnomalyType(record.get("anomaly_type")),
            date_detected=detected,
            severity=Severity(record.get("severity")),
            details=dict(record.get("details") or {}),
            is_ignored=bool(record.get("is_ignored", False)),
            custom_duration=int(duration) if duration not in (None, "") else None,
            id=str(record["id"]) if record.get("id") is not None else None,
        )


def _count(value: float) -> float | int:
    number = float(value)
    return int(number) if number.is_integer() else number


def _campaign_days(frame: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """Per-campaign daily totals, ascending, without the dataset's latest date."""

    if frame.empty:
        return {}
    rows = frame.loc[~is_totals_row(frame["campaign_name"])].copy()
    rows["date"] = pd.to_datetime(rows["date"], errors="coerce").dt.normalize()
    rows = rows.dropna(subset=["date"])
    if rows.empty:
        return {}

    latest = rows["date"].max()
    rows = rows.loc[rows["date"] != latest]
    if rows.empty:
        return {}

    for column in ("impressions", "transactions"):
        rows[column] = pd.to_numeric(rows[column], errors="coerce").fillna(0)
    daily = rows.groupby(["campaign_name", "date"], sort=True)[["impressions", "transactions"]].sum().reset_index()
    return {str(name): group.reset_index(drop=True) for name, group in daily.groupby("campaign_name", sort=False)}


def _impression_severity(magnitude: float, thresholds: AnomalyThresholds) -> Severity:
    if magnitude >= thresholds.impression_high_pct:
        return Severity.HIGH
    if magnitude >= thresholds.impression_medium_pct:
        return Severity.MEDIUM
    return Severity.LOW


def _streak_severity(days: int, thresholds: AnomalyThresholds) -> Severity:
    if days >= thresholds.zero_streak_high_days:
        return Severity.HIGH
    if days >= thresholds.zero_streak_medium_days:
        return Severity.MEDIUM
    return Severity.LOW


def detect_impression_anomalies(frame: pd.DataFrame, thresholds: AnomalyThresholds | None = None) -> List[Anomaly]:
    thresholds = thresholds or AnomalyThresholds()
    anomalies: List[Anomaly] = []
    for name, days in _campaign_days(frame).items():
        values = days["impressions"].tolist()
        dates = days["date"].tolist()
        for index in range(1, len(values)):
            previous, current = values[index - 1], values[index]
            if previous == 0:
                continue
            change = pct_change(current, previous)
            magnitude = abs(change)
            if magnitude < thresholds.impression_change_pct:
                continue
            anomalies.append(
                Anomaly(
                    campaign_name=name,
                    anomaly_type=AnomalyType.IMPRESSION_CHANGE,
                    date_detected=dates[index].date(),
                    severity=_impression_severity(magnitude, thresholds),
                    details={
                        "previous_value": _count(previous),
                        "current_value": _count(current),
                        "percentage_change": round(change, 2),
                        "threshold_exceeded": round(magnitude, 2),
                    },
                )
            )
    return anomalies


def detect_transaction_drop_anomalies(frame: pd.DataFrame, thresholds: AnomalyThresholds | None = None) -> List[Anomaly]:
    thresholds = thresholds or AnomalyThresholds()
    anomalies: List[Anomaly] = []
    for name, days in _campaign_days(frame).items():
        values = days["transactions"].tolist()
        dates = days["date"].tolist()
        for index in range(1, len(values)):
            previous, current = values[index - 1], values[index]
            if previous == 0:
                continue
            change = pct_change(current, previous)
            if change >= 0 or abs(change) < thresholds.transaction_drop_pct:
                continue
            anomalies.append(
                Anomaly(
                    campaign_name=name,
                    anomaly_type=AnomalyType.TRANSACTION_DROP,
                    date_detected=dates[index].date(),
                    severity=Severity.HIGH,
                    details={
                        "previous_value": _count(previous),
                        "current_value": _count(current),
                        "percentage_change": round(change, 2),
                        "threshold_exceeded": round(abs(change), 2),
                    },
                )
            )
    return anomalies


def detect_zero_transaction_anomalies(frame: pd.DataFrame, thresholds: AnomalyThresholds | None = None) -> List[Anomaly]:
    thresholds = thresholds or AnomalyThresholds()
    anomalies: List[Anomaly] = []
    for name, days in _campaign_days(frame).items():
        values = days["transactions"].tolist()
        dates = days["date"].tolist()
        streak = 0
        for index, transactions in enumerate(values):
            if transactions != 0:
                streak = 0
                continue
            streak += 1
            is_last = index == len(values) - 1
            next_has_transactions = not is_last and values[index + 1] > 0
            if streak >= thresholds.zero_transaction_days and (is_last or next_has_transactions):
                anomalies.append(
                    Anomaly(
                        campaign_name=name,
                        anomaly_type=AnomalyType.TRANSACTION_ZERO,
                        date_detected=dates[index].date(),
                        severity=_streak_severity(streak, thresholds),
                        details={"consecutive_days": streak, "threshold_exceeded": streak},
                    )
                )
    return anomalies


def detect_all_anomalies(frame: pd.DataFrame, thresholds: AnomalyThresholds | None = None) -> List[Anomaly]:
    """Run every detector and return the candidates, most recent first."""

    thresholds = thresholds or AnomalyThresholds()
    combined = (
        detect_impression_anomalies(frame, thresholds)
        + detect_transaction_drop_anomalies(frame, thresholds)
        + detect_zero_transaction_anomalies(frame, thresholds)
    )
    logger.info("Detected %d anomaly candidates", len(combined))
    return sorted(combined, key=lambda item: item.date_detected, reverse=True)


def apply_suppressions(anomalies: Iterable[Anomaly], persisted: Iterable[Mapping[str, object]]) -> List[Anomaly]:
    """Carry persisted ignore flags, custom durations and ids onto fresh candidates."""

    stored: Dict[Tuple[str, str, str], Mapping[str, object]] = {}
    for record in persisted:
        detected = parse_date_string(record.get("date_detected"))
        if detected is None:
            continue
        key = (str(record.get("campaign_name", "")), str(record.get("anomaly_type", "")), detected.isoformat())
        stored[key] = record

    merged: List[Anomaly] = []
    for anomaly in anomalies:
        record = stored.get(anomaly.key)
        if record is None:
            merged.append(anomaly)
            continue
        duration = record.get("custom_duration")
        merged.append(
            replace(
                anomaly,
                is_ignored=bool(record.get("is_ignored", False)),
                custom_duration=int(duration) if duration not in (None, "") else None,
                id=str(record["id"]) if record.get("id") is not None else anomaly.id,
            )
        )
    return merged


def filter_anomalies(
    anomalies: Iterable[Anomaly],
    *,
    severity: Severity | str | None = None,
    anomaly_type: AnomalyType | str | None = None,
    recency_days: int | None = None,
    include_ignored: bool = True,
    today: date | None = None,
) -> List[Anomaly]:
    """Keep anomalies matching every given criterion.

    ``recency_days`` keeps anomalies detected on or after ``today - recency_days``.
    """

    wanted_severity = Severity(severity) if severity else None
    wanted_type = AnomalyType(anomaly_type) if anomaly_type else None
    cutoff = None
    if recency_days:
        cutoff = (today or date.today()) - timedelta(days=int(recency_days))

    selected: List[Anomaly] = []
    for anomaly in anomalies:
        if wanted_severity is not None and anomaly.severity is not wanted_severity:
            continue
        if wanted_type is not None and anomaly.anomaly_type is not wanted_type:
            continue
        if cutoff is not None and anomaly.date_detected < cutoff:
            continue
        if not include_ignored and anomaly.is_ignored:
            continue
        selected.append(anomaly)
    return selected


def anomalies_within(anomalies: Iterable[Anomaly], filters: FilterOptions | None) -> List[Anomaly]:
    """Keep anomalies whose campaign and detection date pass the dashboard filters."""

    anomalies = list(anomalies)
    if filters is None or filters.is_empty():
        return anomalies
    kept = selected_campaigns((item.campaign_name for item in anomalies), filters)
    return [
        item
        for item in anomalies
        if item.campaign_name in kept
        and (filters.start_date is None or item.date_detected >= filters.start_date)
        and (filters.end_date is None or item.date_detected <= filters.end_date)
    ]


def anomaly_counts(anomalies: Iterable[Anomaly]) -> Dict[str, int]:
    counts = {"total": 0, "high": 0, "medium": 0, "low": 0}
    for anomaly in anomalies:
        counts["total"] += 1
        counts[anomaly.severity.value] += 1
    return counts


def anomaly_type_display_name(anomaly_type: AnomalyType | str) -> str:
    return ANOMALY_DISPLAY_NAMES.get(AnomalyType(anomaly_type), str(anomaly_type))


def _format_pct(value: float) -> str:
    return f"{abs(value):g}"


def format_anomaly_message(anomaly: Anomaly) -> str:
    details = anomaly.details
    if anomaly.anomaly_type is AnomalyType.IMPRESSION_CHANGE:
        change = float(details.get("percentage_change", 0) or 0)
        direction = "increased" if change > 0 else "decreased"
        previous = details.get("previous_value", 0)
        current = details.get("current_value", 0)
        return f"Impressions {direction} by {_format_pct(change)}% ({previous:,} -> {current:,})"
    if anomaly.anomaly_type is AnomalyType.TRANSACTION_DROP:
        change = float(details.get("percentage_change", 0) or 0)
        return (
            f"Transactions dropped by {_format_pct(change)}% "
            f"({details.get('previous_value')} -> {details.get('current_value')})"
        )
    days = int(details.get("consecutive_days", 0) or 0)
    return f"Zero transactions for {days} consecutive day{'s' if days > 1 else ''}"


def anomalies_to_frame(anomalies: Iterable[Anomaly]) -> pd.DataFrame:
    items = list(anomalies)
    rows = [
        {
            "date_detected": item.date_detected.isoformat(),
            "campaign_name": item.campaign_name,
            "anomaly_type": item.anomaly_type.value,
            "severity": item.severity.value,
            "message": format_anomaly_message(item),
            "percentage_change": item.details.get("percentage_change"),
            "consecutive_days": item.details.get("consecutive_days"),
            "is_ignored": item.is_ignored,
            "custom_duration": item.custom_duration,
        }
        for item in items
    ]
    result = pd.DataFrame(rows, columns=_FRAME_COLUMNS)
    result.attrs["counts"] = anomaly_counts(items)
    return result
