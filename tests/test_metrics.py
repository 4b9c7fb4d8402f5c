from __future__ import annotations

import math

import pandas as pd
import pytest

from Campaign_analytics.config import RoasConvention, SpendMode, SpendSettings
from Campaign_analytics.metrics import (
    add_derived_metrics,
    apply_spend_mode,
    calculate_aov,
    calculate_ctr,
    calculate_roas,
    calculate_roas_per_mille,
    calculate_spend,
    campaign_totals,
    roas_for,
    safe_ratio,
)
from tests.campaign_test_utils import build_rows


def test_ratios_guard_zero_denominators():
    assert calculate_ctr(5, 0) == 0
    assert calculate_roas(100, 0) == 0
    assert calculate_roas_per_mille(100, 0) == 0
    assert calculate_aov(100, 0) == 0
    assert calculate_roas(float("nan"), 10) == 0
    assert calculate_ctr(1, -5) == 0


def test_ratio_values():
    assert calculate_ctr(25, 1000) == pytest.approx(2.5)
    assert calculate_roas(300, 100) == pytest.approx(3.0)
    assert calculate_roas_per_mille(30, 10_000) == pytest.approx(3.0)
    assert calculate_aov(250, 5) == pytest.approx(50.0)


def test_roas_conventions_are_distinct():
    assert roas_for(RoasConvention.SPEND, revenue=100, spend=50, impressions=10_000) == pytest.approx(2.0)
    assert roas_for(RoasConvention.PER_MILLE, revenue=100, spend=50, impressions=10_000) == pytest.approx(10.0)
    assert roas_for("per_mille", revenue=100, spend=0, impressions=0) == 0


def test_safe_ratio_never_returns_nan_or_inf():
    result = safe_ratio(pd.Series([1.0, 2.0, float("nan"), 3.0]), pd.Series([0.0, 4.0, 1.0, float("inf")]))
    assert result.tolist()[:2] == [0.0, 0.5]
    assert all(math.isfinite(value) for value in result)


def test_calculate_spend_uses_selected_cpm():
    assert calculate_spend(10_000) == pytest.approx(150.0)
    assert calculate_spend(10_000, SpendMode.CUSTOM, custom_cpm=20) == pytest.approx(200.0)
    assert calculate_spend(0, SpendMode.CUSTOM, custom_cpm=20) == 0


def test_add_derived_metrics_columns():
    rows = build_rows(
        [
            {"date": "2025-06-01", "impressions": 1000, "clicks": 10, "revenue": 200, "spend": 50, "transactions": 4},
            {"date": "2025-06-02", "impressions": 0, "clicks": 0, "revenue": 0, "spend": 0, "transactions": 0},
        ]
    )
    derived = add_derived_metrics(rows)
    assert derived["ctr"].tolist() == [1.0, 0.0]
    assert derived["roas"].tolist() == [4.0, 0.0]
    assert derived["aov"].tolist() == [50.0, 0.0]

    per_mille = add_derived_metrics(rows, RoasConvention.PER_MILLE)
    assert per_mille["roas"].tolist() == [200.0, 0.0]
    assert "ctr" not in rows.columns


def test_custom_spend_mode_replaces_spend():
    rows = build_rows([{"date": "2025-06-01", "campaign_name": "2001569: MJ: Greenleaf-Summer", "impressions": 2000, "spend": 99}])
    result = apply_spend_mode(rows, SpendSettings(mode=SpendMode.CUSTOM, custom_cpm=10))
    assert result["spend"].tolist() == [20.0]
    assert rows["spend"].tolist() == [99.0]


def test_forced_cpm_agency_overrides_custom_mode():
    rows = build_rows(
        [
            {"date": "2025-06-01", "campaign_name": "2001111: OG: Orchard-Display", "impressions": 10_000, "spend": 500},
            {"date": "2025-06-01", "campaign_name": "2001112: SM: Acme-Display", "impressions": 0, "spend": 5},
            {"date": "2025-06-01", "campaign_name": "2001569: MJ: Greenleaf-Summer", "impressions": 10_000, "spend": 40},
        ]
    )
    default_mode = apply_spend_mode(rows, SpendSettings())
    assert default_mode["spend"].tolist() == [70.0, 5.0, 40.0]

    custom_mode = apply_spend_mode(rows, SpendSettings(mode=SpendMode.CUSTOM, custom_cpm=12))
    assert custom_mode["spend"].tolist() == [70.0, 0.0, 120.0]


def test_campaign_totals_derives_ratios_from_sums():
    rows = build_rows(
        [
            {"date": "2025-06-01", "impressions": 1000, "clicks": 10, "revenue": 100, "spend": 50, "transactions": 2},
            {"date": "2025-06-02", "impressions": 3000, "clicks": 50, "revenue": 300, "spend": 50, "transactions": 6},
            {"date": "2025-06-02", "campaign_name": "Totals", "impressions": 4000, "clicks": 60},
        ]
    )
    totals = campaign_totals(rows)
    assert totals.impressions == 4000
    assert totals.ctr == pytest.approx(1.5)
    assert totals.roas == pytest.approx(4.0)
    assert totals.aov == pytest.approx(50.0)


def test_zero_spend_gives_zero_roas():
    rows = build_rows([{"date": "2025-06-01", "revenue": 500, "spend": 0, "impressions": 100}])
    assert campaign_totals(rows).roas == 0
    assert campaign_totals(build_rows([])).roas == 0
