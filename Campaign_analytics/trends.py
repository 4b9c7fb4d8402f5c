"""Day-over-day trends and period-over-period comparisons."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from datetime import date, timedelta
from typing import Dict, Literal, Optional, Tuple

import pandas as pd

from Campaign_analytics.config import RoasConvention
from Campaign_analytics.data_loader import METRIC_COLUMNS
from Campaign_analytics.dates import parse_date_string
from Campaign_analytics.metrics import calculate_aov, calculate_ctr, roas_for

TrendDirection = Literal["up", "down", "neutral"]

# Metrics where a decrease is the desirable direction.
_LOWER_IS_BETTER = {"spend"}


def pct_change(current: float, previous: float) -> float:
    """Percentage change from ``previous`` to ``current``.

    A zero baseline yields ``100`` when the current value is positive and ``0``
    otherwise.
    """

    current = float(current or 0)
    previous = float(previous or 0)
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    change = (current - previous) / previous * 100.0
    return change if math.isfinite(change) else 0.0


@dataclass(slots=True)
class TrendData:
    impressions: float = 0.0
    clicks: float = 0.0
    ctr: float = 0.0
    transactions: float = 0.0
    revenue: float = 0.0
    spend: float = 0.0
    roas: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def _point_metrics(point: pd.Series, roas_convention: RoasConvention) -> Dict[str, float]:
    values = {column: float(point.get(column, 0) or 0) for column in METRIC_COLUMNS}
    values["ctr"] = calculate_ctr(values["clicks"], values["impressions"])
    values["roas"] = roas_for(
        roas_convention,
        revenue=values["revenue"],
        spend=values["spend"],
        impressions=values["impressions"],
    )
    return values


def calculate_trends(series: pd.DataFrame, roas_convention: RoasConvention = RoasConvention.SPEND) -> TrendData:
    """Compare the last two points of a date-keyed series.

    Ratios are recomputed per point from its sums. Fewer than two dated points
    yields an all-zero :class:`TrendData`.
    """

    if series.empty or "date" not in series.columns:
        return TrendData()
    ordered = series.assign(date=pd.to_datetime(series["date"], errors="coerce"))
    ordered = ordered.dropna(subset=["date"]).sort_values("date", kind="mergesort")
    if len(ordered) < 2:
        return TrendData()

    previous = _point_metrics(ordered.iloc[-2], roas_convention)
    current = _point_metrics(ordered.iloc[-1], roas_convention)
    names = [item.name for item in fields(TrendData)]
    return TrendData(**{name: pct_change(current[name], previous[name]) for name in names})


@dataclass(slots=True)
class PeriodMetrics:
    start: Optional[date]
    end: Optional[date]
    days: int
    impressions: float = 0.0
    clicks: float = 0.0
    revenue: float = 0.0
    spend: float = 0.0
    transactions: float = 0.0
    ctr: float = 0.0
    roas: float = 0.0
    aov: float = 0.0


@dataclass(slots=True)
class MetricComparison:
    metric: str
    current: float
    previous: float
    change: float
    trend: TrendDirection
    is_good: bool


def _window(frame: pd.DataFrame, start: Optional[date], end: Optional[date]) -> pd.DataFrame:
    dates = pd.to_datetime(frame["date"], errors="coerce")
    mask = dates.notna()
    if start is not None:
        mask &= dates >= pd.Timestamp(start)
    if end is not None:
        mask &= dates <= pd.Timestamp(end)
    return frame.loc[mask]


def period_metrics(
    frame: pd.DataFrame,
    start: object = None,
    end: object = None,
    roas_convention: RoasConvention = RoasConvention.PER_MILLE,
) -> PeriodMetrics:
    """Totals for the rows dated inside ``[start, end]``.

    The period cards read ROAS per thousand impressions by default because many
    uploads carry no spend column; pass ``RoasConvention.SPEND`` to switch.
    """

    start_day = parse_date_string(start) if start is not None else None
    end_day = parse_date_string(end) if end is not None else None
    rows = _window(frame, start_day, end_day) if not frame.empty else frame

    if rows.empty:
        days = (end_day - start_day).days + 1 if start_day and end_day else 0
        return PeriodMetrics(start=start_day, end=end_day, days=max(days, 0))

    dates = pd.to_datetime(rows["date"])
    start_day = start_day or dates.min().date()
    end_day = end_day or dates.max().date()
    sums = {column: float(pd.to_numeric(rows[column], errors="coerce").fillna(0).sum()) for column in METRIC_COLUMNS}
    return PeriodMetrics(
        start=start_day,
        end=end_day,
        days=(end_day - start_day).days + 1,
        **sums,
        ctr=calculate_ctr(sums["clicks"], sums["impressions"]),
        roas=roas_for(roas_convention, revenue=sums["revenue"], spend=sums["spend"], impressions=sums["impressions"]),
        aov=calculate_aov(sums["revenue"], sums["transactions"]),
    )


def previous_period_range(start: object, end: object) -> Tuple[date, date]:
    """The window of equal length that ends the day before ``start``."""

    start_day = parse_date_string(start)
    end_day = parse_date_string(end)
    if start_day is None or end_day is None or end_day < start_day:
        raise ValueError("previous_period_range needs a valid start and end date")
    length = (end_day - start_day).days + 1
    previous_end = start_day - timedelta(days=1)
    return previous_end - timedelta(days=length - 1), previous_end


def previous_period(
    frame: pd.DataFrame,
    current: PeriodMetrics,
    roas_convention: RoasConvention = RoasConvention.PER_MILLE,
) -> PeriodMetrics:
    if current.start is None or current.end is None:
        return PeriodMetrics(start=None, end=None, days=0)
    start, end = previous_period_range(current.start, current.end)
    return period_metrics(frame, start, end, roas_convention)


def metric_comparison(current: PeriodMetrics, previous: PeriodMetrics, metric: str) -> MetricComparison:
    """Describe how ``metric`` moved between two periods.

    ``is_good`` is true for increases, except for spend where a decrease is good.
    """

    current_value = float(getattr(current, metric))
    previous_value = float(getattr(previous, metric))
    change = pct_change(current_value, previous_value)
    if change > 0:
        trend: TrendDirection = "up"
    elif change < 0:
        trend = "down"
    else:
        trend = "neutral"
    if trend == "neutral":
        is_good = True
    elif metric in _LOWER_IS_BETTER:
        is_good = trend == "down"
    else:
        is_good = trend == "up"
    return MetricComparison(
        metric=metric,
        current=current_value,
        previous=previous_value,
        change=change,
        trend=trend,
        is_good=is_good,
    )
