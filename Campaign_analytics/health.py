"""Composite campaign health scoring.

Five sub-scores, each on a 0-10 scale, are combined with configurable weights
(default ROAS 40%, delivery pacing 30%, burn rate 15%, CTR 10%, overspend 5%).
Burn-rate windows are reported for context only and never feed the composite
beyond the single rate the burn-rate score uses.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Literal, Optional

import pandas as pd

from Campaign_analytics.config import HealthSettings, RoasConvention
from Campaign_analytics.data_loader import is_totals_row
from Campaign_analytics.metrics import campaign_totals
from Campaign_analytics.pacing import CampaignPacing

logger = logging.getLogger(__name__)

HealthBand = Literal["green", "amber", "red"]
BurnBasis = Literal["7-day", "3-day", "1-day", "no-data"]

WINDOW_CONFIDENCE = {1: "high", 3: "medium", 7: "low"}


@dataclass(slots=True)
class BurnRateWindow:
    days: int
    rate: float = 0.0
    percentage: float = 0.0
    confidence: str = "low"
    available: bool = False


def _window(days: int) -> BurnRateWindow:
    return BurnRateWindow(days=days, confidence=WINDOW_CONFIDENCE[days])


@dataclass(slots=True)
class BurnRateData:
    one_day: BurnRateWindow = field(default_factory=lambda: _window(1))
    three_day: BurnRateWindow = field(default_factory=lambda: _window(3))
    seven_day: BurnRateWindow = field(default_factory=lambda: _window(7))
    basis: BurnBasis = "no-data"
    daily_goal: float = 0.0

    @property
    def current(self) -> Optional[BurnRateWindow]:
        return {"7-day": self.seven_day, "3-day": self.three_day, "1-day": self.one_day}.get(self.basis)

    @property
    def current_rate(self) -> float:
        window = self.current
        return window.rate if window is not None else 0.0


@dataclass(slots=True)
class CampaignHealthData:
    campaign_name: str
    health_score: float = 0.0
    roas: float = 0.0
    roas_score: float = 0.0
    delivery_pacing: float = 0.0
    delivery_pacing_score: float = 0.0
    burn_rate_percentage: float = 0.0
    burn_rate_score: float = 0.0
    ctr: float = 0.0
    ctr_score: float = 0.0
    overspend: float = 0.0
    overspend_score: float = 0.0
    completion_percentage: float = 0.0
    burn_rate_data: BurnRateData = field(default_factory=BurnRateData)
    spend: float = 0.0
    budget: Optional[float] = None

    @property
    def band(self) -> HealthBand:
        return health_band(self.health_score)

    def as_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        burn = payload.pop("burn_rate_data")
        payload["burn_rate_basis"] = burn["basis"]
        for key in ("one_day", "three_day", "seven_day"):
            payload[f"burn_rate_{key}"] = burn[key]["rate"]
            payload[f"burn_rate_{key}_pct"] = burn[key]["percentage"]
        payload["band"] = self.band
        return payload


def calculate_roas_score(roas: float) -> float:
    if roas >= 4.0:
        return 10.0
    if roas >= 3.0:
        return 7.5
    if roas >= 2.0:
        return 5.0
    if roas >= 1.0:
        return 2.5
    if roas > 0:
        return 1.0
    return 0.0


def calculate_delivery_pacing_score(actual_impressions: float, expected_impressions: float) -> float:
    if expected_impressions <= 0:
        return 0.0
    percent = actual_impressions / expected_impressions * 100
    if 95 <= percent <= 105:
        return 10.0
    if 90 <= percent <= 110:
        return 8.0
    if 80 <= percent <= 120:
        return 6.0
    return 3.0


def calculate_burn_rate(frame: pd.DataFrame, campaign_name: str, daily_goal: float = 0.0) -> BurnRateData:
    """Recent delivery rates for one campaign over its last 1, 3 and 7 dated days."""

    result = BurnRateData(daily_goal=float(daily_goal))
    if frame.empty:
        return result
    rows = frame.loc[(frame["campaign_name"] == campaign_name) & ~is_totals_row(frame["campaign_name"])]
    dates = pd.to_datetime(rows["date"], errors="coerce")
    rows = rows.assign(date=dates.dt.normalize()).dropna(subset=["date"])
    if rows.empty:
        return result

    daily = pd.to_numeric(rows["impressions"], errors="coerce").fillna(0).groupby(rows["date"]).sum().sort_index()
    recent = daily.tail(7)

    for window in (result.one_day, result.three_day, result.seven_day):
        if len(recent) < window.days:
            continue
        window.rate = float(recent.tail(window.days).sum() / window.days)
        window.percentage = window.rate / daily_goal * 100 if daily_goal > 0 else 0.0
        window.available = True

    if len(recent) >= 7:
        result.basis = "7-day"
    elif len(recent) >= 3:
        result.basis = "3-day"
    else:
        result.basis = "1-day"
    return result


def calculate_burn_rate_score(burn_rate: BurnRateData, required_daily_impressions: float) -> float:
    if required_daily_impressions <= 0 or burn_rate.current is None:
        return 0.0
    ratio = burn_rate.current_rate / required_daily_impressions
    if 0.95 <= ratio <= 1.05:
        return 10.0
    if 0.85 <= ratio <= 1.15:
        return 8.0
    return 5.0


def calculate_ctr_score(ctr: float, benchmark: float = 0.5) -> float:
    if ctr == 0 or benchmark == 0:
        return 0.0
    deviation = (ctr - benchmark) / benchmark
    if deviation > 0.1:
        return 10.0
    if deviation >= -0.1:
        return 8.0
    return 5.0


def calculate_overspend(spend: float, budget: Optional[float], days_into: int, days_left: int) -> float:
    """Projected spend beyond budget if the average daily spend so far continues."""

    if not budget or budget <= 0:
        return 0.0
    daily_spend = spend / days_into if days_into > 0 else 0.0
    projected = spend + daily_spend * max(days_left, 0)
    return max(0.0, projected - budget)


def calculate_overspend_score(overspend: float, budget: Optional[float]) -> float:
    if not budget or budget <= 0:
        return 0.0
    if overspend <= 0:
        return 10.0
    ratio = overspend / budget
    if ratio <= 0.05:
        return 8.0
    if ratio <= 0.10:
        return 5.0
    return 0.0


def health_band(score: float) -> HealthBand:
    if score >= 7:
        return "green"
    if score >= 4:
        return "amber"
    return "red"


def _average_daily_impressions(rows: pd.DataFrame) -> float:
    dated = rows.assign(date=pd.to_datetime(rows["date"], errors="coerce")).dropna(subset=["date"])
    days = dated["date"].dt.normalize().nunique()
    if days == 0:
        return 0.0
    return float(pd.to_numeric(dated["impressions"], errors="coerce").fillna(0).sum() / days)


def score_campaign_health(
    frame: pd.DataFrame,
    campaign_name: str,
    pacing: CampaignPacing | None = None,
    settings: HealthSettings | None = None,
    roas_convention: RoasConvention = RoasConvention.SPEND,
) -> CampaignHealthData:
    """Score one campaign.

    With pacing data the delivery, burn-rate and overspend scores use the
    contract; without it delivery pacing and overspend score ``0`` and burn
    rate is judged against the campaign's own average daily delivery.
    """

    settings = settings or HealthSettings()
    rows = frame.loc[frame["campaign_name"] == campaign_name] if not frame.empty else frame
    rows = rows.loc[~is_totals_row(rows["campaign_name"])] if not rows.empty else rows
    if rows.empty:
        return CampaignHealthData(campaign_name=campaign_name)

    totals = campaign_totals(rows, roas_convention)
    roas_score = calculate_roas_score(totals.roas)
    ctr_score = calculate_ctr_score(totals.ctr, settings.ctr_benchmark)

    budget: Optional[float] = None
    overspend = 0.0
    if pacing is not None:
        delivery_pacing = pacing.current_pacing * 100
        delivery_score = calculate_delivery_pacing_score(pacing.actual_impressions, pacing.expected_impressions)
        required_daily = pacing.remaining_average_needed
        if required_daily <= 0 and pacing.total_days > 0:
            required_daily = pacing.impressions_goal / pacing.total_days
        budget = pacing.budget
        overspend = calculate_overspend(pacing.actual_spend, budget, pacing.days_into_campaign, pacing.days_until_end)
        overspend_score = calculate_overspend_score(overspend, budget)
        completion = pacing.completion_percentage
    else:
        delivery_pacing = 0.0
        delivery_score = 0.0
        required_daily = _average_daily_impressions(rows)
        overspend_score = 0.0
        completion = 0.0

    burn_rate = calculate_burn_rate(rows, campaign_name, required_daily)
    burn_score = calculate_burn_rate_score(burn_rate, required_daily)
    burn_percentage = burn_rate.current_rate / required_daily * 100 if required_daily > 0 else 0.0

    weights = settings.weights
    total_weight = weights.total()
    weighted = (
        roas_score * weights.roas
        + delivery_score * weights.delivery_pacing
        + burn_score * weights.burn_rate
        + ctr_score * weights.ctr
        + overspend_score * weights.overspend
    )
    health_score = round(weighted / total_weight, 1) if total_weight > 0 else 0.0

    return CampaignHealthData(
        campaign_name=campaign_name,
        health_score=health_score,
        roas=totals.roas,
        roas_score=roas_score,
        delivery_pacing=delivery_pacing,
        delivery_pacing_score=delivery_score,
        burn_rate_percentage=burn_percentage,
        burn_rate_score=burn_score,
        ctr=totals.ctr,
        ctr_score=ctr_score,
        overspend=overspend,
        overspend_score=overspend_score,
        completion_percentage=round(min(100.0, max(0.0, completion)), 1),
        burn_rate_data=burn_rate,
        spend=totals.spend,
        budget=budget,
    )


def score_all_campaigns(
    frame: pd.DataFrame,
    pacing: Iterable[CampaignPacing] = (),
    settings: HealthSettings | None = None,
    roas_convention: RoasConvention = RoasConvention.SPEND,
) -> List[CampaignHealthData]:
    if frame.empty:
        return []
    by_name = {item.campaign_name: item for item in pacing}
    names = frame.loc[~is_totals_row(frame["campaign_name"]), "campaign_name"].astype(str).unique()
    results = [
        score_campaign_health(frame, name, by_name.get(name), settings, roas_convention)
        for name in sorted(names, key=str.lower)
    ]
    logger.info("Scored health for %d campaigns (%d with contract terms)", len(results), len(by_name))
    return results


def health_to_frame(health: Iterable[CampaignHealthData]) -> pd.DataFrame:
    return pd.DataFrame([item.as_dict() for item in health])
