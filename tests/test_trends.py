from __future__ import annotations

from datetime import date

import pytest

from Campaign_analytics.aggregation import aggregate_by_date
from Campaign_analytics.config import RoasConvention
from Campaign_analytics.trends import (
    PeriodMetrics,
    TrendData,
    calculate_trends,
    metric_comparison,
    pct_change,
    period_metrics,
    previous_period,
    previous_period_range,
)
from tests.campaign_test_utils import build_rows


def test_pct_change_zero_baseline():
    assert pct_change(5, 0) == 100.0
    assert pct_change(0, 0) == 0.0
    assert pct_change(50, 100) == -50.0


def test_trends_compare_last_two_points(two_campaign_rows):
    daily = aggregate_by_date(two_campaign_rows)
    trends = calculate_trends(daily)
    assert trends.impressions == pytest.approx((2900 - 3300) / 3300 * 100)
    assert trends.ctr == pytest.approx(0.0)
    assert trends.spend == pytest.approx((43.5 - 49.5) / 49.5 * 100)


def test_trends_need_two_points():
    single = aggregate_by_date(build_rows([{"date": "2025-06-01", "impressions": 100}]))
    assert calculate_trends(single) == TrendData()


def test_period_metrics_window(two_campaign_rows):
    current = period_metrics(two_campaign_rows, "2025-06-05", "2025-06-08")
    assert current.days == 4
    assert current.impressions == 12800
    assert current.revenue == pytest.approx(1080)
    assert current.roas == pytest.approx(1080 / 12800 * 1000)

    by_spend = period_metrics(two_campaign_rows, "2025-06-05", "2025-06-08", RoasConvention.SPEND)
    assert by_spend.roas == pytest.approx(1080 / 192)


def test_period_metrics_outside_data_is_zero(two_campaign_rows):
    empty = period_metrics(two_campaign_rows, "2024-01-01", "2024-01-03")
    assert empty.days == 3
    assert empty.impressions == 0
    assert empty.roas == 0


def test_previous_period_has_equal_length(two_campaign_rows):
    assert previous_period_range("2025-06-05", "2025-06-08") == (date(2025, 6, 1), date(2025, 6, 4))

    current = period_metrics(two_campaign_rows, "2025-06-05", "2025-06-08")
    previous = previous_period(two_campaign_rows, current)
    assert previous.start == date(2025, 6, 1)
    assert previous.impressions == 12600


def test_previous_period_range_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        previous_period_range("2025-06-08", "2025-06-01")


def test_metric_comparison_direction(two_campaign_rows):
    current = period_metrics(two_campaign_rows, "2025-06-05", "2025-06-08")
    previous = previous_period(two_campaign_rows, current)
    comparison = metric_comparison(current, previous, "impressions")
    assert comparison.trend == "up"
    assert comparison.is_good
    assert comparison.change == pytest.approx(200 / 12600 * 100)


def test_spend_decrease_is_good():
    current = PeriodMetrics(start=None, end=None, days=0, spend=50)
    previous = PeriodMetrics(start=None, end=None, days=0, spend=100)
    comparison = metric_comparison(current, previous, "spend")
    assert comparison.trend == "down"
    assert comparison.is_good

    flat = metric_comparison(previous, previous, "revenue")
    assert flat.trend == "neutral"
    assert flat.is_good
