from __future__ import annotations

from datetime import date

import pytest

from Campaign_analytics.config import HealthSettings, HealthWeights
from Campaign_analytics.health import (
    BurnRateData,
    calculate_burn_rate,
    calculate_burn_rate_score,
    calculate_ctr_score,
    calculate_delivery_pacing_score,
    calculate_overspend,
    calculate_overspend_score,
    calculate_roas_score,
    health_band,
    health_to_frame,
    score_all_campaigns,
    score_campaign_health,
)
from Campaign_analytics.pacing import ContractTerms, calculate_campaign_pacing
from tests.campaign_test_utils import build_rows

HRB = "2001367: HRB: Sol Flower-Display"
MJ = "2001569: MJ: Greenleaf-Summer"


def _hrb_pacing(frame, budget: float = 450.0):
    terms = ContractTerms(
        campaign_name=HRB,
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 30),
        budget=budget,
        cpm=15.0,
        impressions_goal=30_000,
    )
    return calculate_campaign_pacing(terms, frame)


@pytest.mark.parametrize("roas, expected", [(4.0, 10.0), (3.5, 7.5), (2.0, 5.0), (1.0, 2.5), (0.5, 1.0), (0.0, 0.0)])
def test_roas_score(roas, expected):
    assert calculate_roas_score(roas) == expected


@pytest.mark.parametrize("actual, expected_score", [(100, 10.0), (92, 8.0), (85, 6.0), (50, 3.0)])
def test_delivery_pacing_score(actual, expected_score):
    assert calculate_delivery_pacing_score(actual, 100) == expected_score


def test_delivery_pacing_without_expectation():
    assert calculate_delivery_pacing_score(10, 0) == 0.0


def test_ctr_score_against_benchmark():
    assert calculate_ctr_score(0.0) == 0.0
    assert calculate_ctr_score(0.6) == 10.0
    assert calculate_ctr_score(0.5) == 8.0
    assert calculate_ctr_score(0.3) == 5.0
    assert calculate_ctr_score(1.0, benchmark=2.0) == 5.0


def test_overspend_projection_and_score():
    assert calculate_overspend(100, 200, 10, 10) == 0.0
    assert calculate_overspend(150, 200, 10, 10) == pytest.approx(100.0)
    assert calculate_overspend(150, None, 10, 10) == 0.0

    assert calculate_overspend_score(0, 200) == 10.0
    assert calculate_overspend_score(5, 200) == 8.0
    assert calculate_overspend_score(20, 200) == 5.0
    assert calculate_overspend_score(50, 200) == 0.0
    assert calculate_overspend_score(0, None) == 0.0


def test_health_bands():
    assert health_band(7.0) == "green"
    assert health_band(6.9) == "amber"
    assert health_band(4.0) == "amber"
    assert health_band(3.9) == "red"


def test_burn_rate_windows_follow_available_days():
    rows = build_rows([{"date": "2025-06-01", "impressions": 200}, {"date": "2025-06-02", "impressions": 50}])
    burn = calculate_burn_rate(rows, "2001367: HRB: Sol Flower-Display", daily_goal=100)
    assert burn.basis == "1-day"
    assert burn.one_day.available
    assert burn.one_day.rate == 50
    assert burn.one_day.percentage == pytest.approx(50.0)
    assert burn.one_day.confidence == "high"
    assert not burn.three_day.available
    assert calculate_burn_rate(rows, "missing").basis == "no-data"


def test_burn_rate_seven_day_basis(two_campaign_rows):
    burn = calculate_burn_rate(two_campaign_rows, HRB)
    assert burn.basis == "7-day"
    assert burn.seven_day.rate == pytest.approx(8400 / 7)
    assert burn.three_day.rate == pytest.approx((1300 + 1300 + 900) / 3)
    assert burn.seven_day.confidence == "low"


def test_burn_rate_score():
    assert calculate_burn_rate_score(BurnRateData(), 100) == 0.0
    burn = BurnRateData(basis="1-day")
    burn.one_day.rate = 100
    assert calculate_burn_rate_score(burn, 100) == 10.0
    burn.one_day.rate = 110
    assert calculate_burn_rate_score(burn, 100) == 8.0
    burn.one_day.rate = 200
    assert calculate_burn_rate_score(burn, 100) == 5.0


def test_score_with_contract_terms(two_campaign_rows):
    health = score_campaign_health(two_campaign_rows, HRB, _hrb_pacing(two_campaign_rows))
    assert health.roas_score == 10.0
    assert health.ctr_score == 10.0
    assert health.delivery_pacing_score == 3.0
    assert health.burn_rate_score == 5.0
    assert health.overspend_score == 0.0
    assert health.health_score == pytest.approx(6.65, abs=0.06)
    assert health.band == "amber"
    assert health.budget == 450.0
    assert health.completion_percentage == pytest.approx(23.3)

    generous = score_campaign_health(two_campaign_rows, HRB, _hrb_pacing(two_campaign_rows, budget=1000.0))
    assert generous.overspend_score == 10.0
    assert generous.band == "green"


def test_score_without_contract_terms(two_campaign_rows):
    health = score_campaign_health(two_campaign_rows, MJ)
    assert health.delivery_pacing_score == 0.0
    assert health.overspend_score == 0.0
    # judged against its own average daily delivery
    assert health.burn_rate_score == 10.0
    assert health.health_score == pytest.approx(6.5)
    assert health.budget is None


def test_weights_are_normalised(two_campaign_rows):
    settings = HealthSettings(weights=HealthWeights(roas=2.0, delivery_pacing=0, burn_rate=0, ctr=0, overspend=0))
    assert score_campaign_health(two_campaign_rows, MJ, settings=settings).health_score == 10.0


def test_unknown_campaign_scores_zero(two_campaign_rows):
    health = score_campaign_health(two_campaign_rows, "2009999: TF: Nobody-Fall")
    assert health.health_score == 0.0
    assert health.band == "red"


def test_score_all_campaigns(two_campaign_rows):
    results = score_all_campaigns(two_campaign_rows, [_hrb_pacing(two_campaign_rows)])
    assert [item.campaign_name for item in results] == [HRB, MJ]
    assert results[0].budget == 450.0
    assert results[1].budget is None

    frame = health_to_frame(results)
    assert {"band", "burn_rate_basis", "burn_rate_seven_day"} <= set(frame.columns)
    assert score_all_campaigns(build_rows([])) == []
