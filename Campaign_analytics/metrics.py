"""Derived campaign metrics with explicit zero-denominator handling.

Supported ratios:

* ``CTR``  = clicks / impressions * 100
* ``ROAS`` = revenue / spend (``RoasConvention.SPEND``)
* ``ROAS`` = revenue / impressions * 1000 (``RoasConvention.PER_MILLE``)
* ``AOV``  = revenue / transactions

Every ratio is zero guarded: a denominator ``<= 0`` or a non-finite result
yields ``0``. Nothing here returns ``NaN``/``inf`` or raises on bad numbers.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict

import numpy as np
import pandas as pd

from Campaign_analytics.campaigns import extract_agency_info
from Campaign_analytics.config import RoasConvention, SpendMode, SpendSettings
from Campaign_analytics.data_loader import METRIC_COLUMNS, is_totals_row


def _safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    try:
        numerator = float(numerator)
        denominator = float(denominator)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(numerator) or not math.isfinite(denominator) or denominator <= 0:
        return 0.0
    value = numerator / denominator * scale
    return value if math.isfinite(value) else 0.0


def safe_ratio(numerator: pd.Series, denominator: pd.Series, scale: float = 1.0) -> pd.Series:
    """Vectorised ratio returning ``0`` wherever the denominator is not positive."""

    num = pd.to_numeric(numerator, errors="coerce").astype(float)
    den = pd.to_numeric(denominator, errors="coerce").astype(float)
    valid = den > 0
    with np.errstate(divide="ignore", invalid="ignore"):
        values = np.where(valid, num / den.where(valid, 1.0) * scale, 0.0)
    result = pd.Series(values, index=num.index, dtype="float64")
    return result.replace([np.inf, -np.inf], 0.0).fillna(0.0)


def calculate_ctr(clicks: float, impressions: float) -> float:
    return _safe_ratio(clicks, impressions, 100.0)


def calculate_roas(revenue: float, spend: float) -> float:
    return _safe_ratio(revenue, spend)


def calculate_roas_per_mille(revenue: float, impressions: float) -> float:
    return _safe_ratio(revenue, impressions, 1000.0)


def calculate_aov(revenue: float, transactions: float) -> float:
    return _safe_ratio(revenue, transactions)


def roas_for(convention: RoasConvention, *, revenue: float, spend: float, impressions: float) -> float:
    if RoasConvention(convention) is RoasConvention.PER_MILLE:
        return calculate_roas_per_mille(revenue, impressions)
    return calculate_roas(revenue, spend)


def calculate_spend(
    impressions: float,
    mode: SpendMode = SpendMode.DEFAULT,
    custom_cpm: float = 15.0,
    default_cpm: float = 15.0,
) -> float:
    """Estimated spend for ``impressions`` at the CPM the spend mode selects."""

    cpm = custom_cpm if SpendMode(mode) is SpendMode.CUSTOM else default_cpm
    return _safe_ratio(impressions, 1000.0) * cpm


def add_derived_metrics(frame: pd.DataFrame, roas_convention: RoasConvention = RoasConvention.SPEND) -> pd.DataFrame:
    """Return a copy of ``frame`` with ``ctr``, ``roas`` and ``aov`` columns."""

    result = frame.copy()
    result["ctr"] = safe_ratio(result["clicks"], result["impressions"], 100.0)
    if RoasConvention(roas_convention) is RoasConvention.PER_MILLE:
        result["roas"] = safe_ratio(result["revenue"], result["impressions"], 1000.0)
    else:
        result["roas"] = safe_ratio(result["revenue"], result["spend"])
    result["aov"] = safe_ratio(result["revenue"], result["transactions"])
    return result


def forced_cpm_mask(campaign_names: pd.Series, settings: SpendSettings) -> pd.Series:
    """Rows whose agency is billed at the forced CPM regardless of reported spend."""

    abbreviations = set(settings.forced_abbreviations)
    agencies = set(settings.forced_agencies)
    lookup: Dict[str, bool] = {}
    for name in campaign_names.astype(str).unique():
        info = extract_agency_info(name)
        lookup[name] = info.abbreviation in abbreviations or info.agency in agencies
    return campaign_names.astype(str).map(lookup).astype(bool)


def apply_spend_mode(frame: pd.DataFrame, settings: SpendSettings | None = None) -> pd.DataFrame:
    """Recompute ``spend`` from impressions where the spend rules require it.

    Custom mode replaces every row's spend with ``impressions / 1000 * custom_cpm``.
    Independently, campaigns of a forced-CPM agency with delivered impressions are
    always billed at ``forced_cpm``. Call this before any ratio metric.
    """

    settings = settings or SpendSettings()
    result = frame.copy()
    if result.empty:
        return result

    impressions = pd.to_numeric(result["impressions"], errors="coerce").fillna(0).astype(float)
    if SpendMode(settings.mode) is SpendMode.CUSTOM:
        result["spend"] = impressions / 1000.0 * settings.custom_cpm

    forced = forced_cpm_mask(result["campaign_name"], settings) & (impressions > 0)
    if forced.any():
        result.loc[forced, "spend"] = impressions[forced] / 1000.0 * settings.forced_cpm
    result["spend"] = result["spend"].astype(float)
    return result


@dataclass(slots=True)
class CampaignTotals:
    impressions: float = 0.0
    clicks: float = 0.0
    revenue: float = 0.0
    spend: float = 0.0
    transactions: float = 0.0
    ctr: float = 0.0
    roas: float = 0.0
    aov: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def campaign_totals(frame: pd.DataFrame, roas_convention: RoasConvention = RoasConvention.SPEND) -> CampaignTotals:
    """Sum every additive metric over ``frame`` and derive the ratios from the sums."""

    if frame.empty:
        return CampaignTotals()
    rows = frame.loc[~is_totals_row(frame["campaign_name"])]
    sums = {column: float(pd.to_numeric(rows[column], errors="coerce").fillna(0).sum()) for column in METRIC_COLUMNS}
    return CampaignTotals(
        **sums,
        ctr=calculate_ctr(sums["clicks"], sums["impressions"]),
        roas=roas_for(
            roas_convention,
            revenue=sums["revenue"],
            spend=sums["spend"],
            impressions=sums["impressions"],
        ),
        aov=calculate_aov(sums["revenue"], sums["transactions"]),
    )
