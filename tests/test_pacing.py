from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from Campaign_analytics.errors import CsvImportError, PacingError
from Campaign_analytics.pacing import (
    ContractTerms,
    CampaignRenewal,
    RenewalStatus,
    attach_renewal_status,
    calculate_campaign_pacing,
    load_contract_terms,
    pacing_status,
    pacing_to_frame,
    parse_money,
    process_campaigns,
    reference_date_for,
)
from tests.campaign_test_utils import build_rows

HRB = "2001367: HRB: Sol Flower-Display"
MJ = "2001569: MJ: Greenleaf-Summer"


def _june_terms(name: str = HRB, **overrides) -> ContractTerms:
    values = dict(
        campaign_name=name,
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 30),
        budget=450.0,
        cpm=15.0,
        impressions_goal=30_000,
    )
    values.update(overrides)
    return ContractTerms(**values)


def test_parse_money():
    assert parse_money("$1,234.50") == 1234.5
    assert parse_money("") is None
    assert parse_money("n/a") is None
    assert parse_money(12) == 12.0
    assert parse_money(float("nan")) is None


@pytest.mark.parametrize(
    "pacing, expected",
    [(1.0, "on-target"), (0.96, "on-target"), (0.9, "minor"), (1.1, "minor"), (0.72, "moderate"), (1.31, "major"), (0.0, "major")],
)
def test_pacing_status_bands(pacing, expected):
    assert pacing_status(pacing) == expected


def test_reference_date_is_second_latest(two_campaign_rows):
    assert reference_date_for(two_campaign_rows) == date(2025, 6, 7)
    single = build_rows([{"date": "2025-06-03"}])
    assert reference_date_for(single) == date(2025, 6, 3)
    assert reference_date_for(build_rows([]), fallback=date(2025, 1, 1)) == date(2025, 1, 1)


def test_campaign_pacing_through_reference_day(two_campaign_rows):
    pacing = calculate_campaign_pacing(_june_terms(), two_campaign_rows)
    assert pacing.reference_date == date(2025, 6, 7)
    assert pacing.total_days == 30
    assert pacing.days_into_campaign == 7
    assert pacing.days_until_end == 23
    assert pacing.expected_impressions == pytest.approx(7000)
    assert pacing.actual_impressions == 8500
    assert pacing.actual_spend == pytest.approx(127.5)
    assert pacing.current_pacing == pytest.approx(8500 / 7000)
    assert pacing.status == "moderate"
    assert pacing.remaining_impressions == 21_500
    assert pacing.remaining_average_needed == pytest.approx(21_500 / 23)
    assert pacing.yesterday_impressions == 1300
    assert pacing.yesterday_vs_needed == pytest.approx(1300 / (21_500 / 23))
    assert pacing.completion_percentage == pytest.approx(7 / 30 * 100)


def test_goal_met_leaves_nothing_remaining(two_campaign_rows):
    pacing = calculate_campaign_pacing(_june_terms(impressions_goal=5000), two_campaign_rows)
    assert pacing.remaining_impressions == 0
    assert pacing.remaining_average_needed == 0
    assert pacing.yesterday_vs_needed == 0


def test_incomplete_terms_raise(two_campaign_rows):
    with pytest.raises(PacingError):
        calculate_campaign_pacing(_june_terms(budget=None), two_campaign_rows)
    with pytest.raises(PacingError):
        calculate_campaign_pacing(_june_terms(end_date=date(2025, 5, 1)), two_campaign_rows)


def test_process_campaigns_skips_undelivered_and_incomplete(two_campaign_rows):
    terms = [_june_terms(), _june_terms(MJ, cpm=None), _june_terms("2009999: TF: Nobody-Fall")]
    results = process_campaigns(terms, two_campaign_rows)
    assert [item.campaign_name for item in results] == [HRB]

    frame = pacing_to_frame(results)
    assert {"status", "completion_percentage", "current_pacing"} <= set(frame.columns)
    assert process_campaigns([], two_campaign_rows) == []


def test_load_contract_terms_from_export():
    raw = pd.DataFrame(
        {
            "Name": [HRB, "", MJ, "2009999: TF: Nobody-Fall"],
            "Start Date": ["6/1/2025", "6/1/2025", "2025-06-01", "soon"],
            "End Date": ["6/30/2025", "6/30/2025", "2025-06-30", "later"],
            "Budget": ["$450.00", "$1", "1,200", "$5"],
            "CPM": ["$15", "1", "", "2"],
            "Impressions Goal": ["30,000", "1", "80000", "9"],
        }
    )
    terms = load_contract_terms(raw)
    assert [item.campaign_name for item in terms] == [HRB, MJ]
    assert terms[0].budget == 450.0
    assert terms[0].impressions_goal == 30_000
    assert terms[1].cpm is None
    assert terms[1].start_date == date(2025, 6, 1)


def test_load_contract_terms_requires_flight_columns():
    raw = pd.DataFrame({"Name": [HRB], "Start Date": ["6/1/2025"]})
    with pytest.raises(CsvImportError) as excinfo:
        load_contract_terms(raw)
    assert excinfo.value.missing_columns == ["End Date"]


def test_contract_terms_from_record_rejects_bad_dates():
    with pytest.raises(PacingError):
        ContractTerms.from_record({"campaign_name": HRB, "start_date": "", "end_date": "2025-06-30"})
    terms = ContractTerms.from_record(_june_terms().to_record())
    assert terms == _june_terms()


def test_renewal_status_joins_pacing_rows(two_campaign_rows):
    pacing = pacing_to_frame(process_campaigns([_june_terms(), _june_terms(MJ)], two_campaign_rows))
    renewals = [CampaignRenewal(campaign_name=MJ, renewal_status=RenewalStatus.NOT_RENEWING, notes="Budget moved")]

    joined = attach_renewal_status(pacing, renewals)
    by_name = joined.set_index("campaign_name")
    assert by_name.loc[MJ, "renewal_status"] == "Not Renewing"
    assert by_name.loc[MJ, "renewal_notes"] == "Budget moved"
    assert by_name.loc[HRB, "renewal_status"] == ""
    assert "renewal_status" not in pacing.columns


def test_renewal_from_record_rejects_unknown_status():
    record = {"id": 4, "campaign_order_name": HRB, "renewal_status": "Renewal Activated", "notes": ""}
    renewal = CampaignRenewal.from_record(record)
    assert renewal.renewal_status is RenewalStatus.ACTIVATED
    assert renewal.id == "4"
    assert renewal.notes is None
    with pytest.raises(PacingError):
        CampaignRenewal.from_record({**record, "renewal_status": "Lapsed"})
