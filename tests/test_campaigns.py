from __future__ import annotations

from datetime import date

import pytest

from Campaign_analytics.campaigns import (
    AgencyInfo,
    add_campaign_dimensions,
    extract_advertiser_name,
    extract_agency_info,
    filter_rows,
    is_test_campaign,
    selected_campaigns,
)
from Campaign_analytics.config import FilterOptions
from tests.campaign_test_utils import build_rows


@pytest.mark.parametrize(
    "name, expected",
    [
        ("2001367: HRB: Sol Flower-Dispensary Display", AgencyInfo("Herb.co", "HRB")),
        ("Awaiting IO: MJ: Greenleaf-Summer Promo", AgencyInfo("MediaJel", "MJ")),
        ("2001567/2001103: TF: Acme-Spring", AgencyInfo("Tact Firm", "TF")),
        ("2001234: WWX-Brand Awareness", AgencyInfo("Wunderworx", "WWX")),
        ("2001943:Partner-PRP", AgencyInfo("Propaganda Creative", "PRP")),
        ("2001999: ZZ: Unknown Co-Flight", AgencyInfo("ZZ", "ZZ")),
        ("no separators at all", AgencyInfo()),
        ("", AgencyInfo()),
    ],
)
def test_extract_agency_info(name, expected):
    assert extract_agency_info(name) == expected


@pytest.mark.parametrize(
    "name, expected",
    [
        ("2001367: HRB: Sol Flower-Dispensary Display", "Sol Flower"),
        ("2001569: MJ: Greenleaf-Summer Promo", "Greenleaf"),
        ("Awaiting IO: MJ: Bright Leaf-Q3", "Bright Leaf"),
        ("2001567/2001103: TF: Acme-Spring", "Acme"),
        ("SM: Acme Corp-Q3", "Acme Corp"),
        ("Plain campaign", ""),
        ("", ""),
    ],
)
def test_extract_advertiser_name(name, expected):
    assert extract_advertiser_name(name) == expected


def test_is_test_campaign():
    assert is_test_campaign("2001000: HRB: TEST placement-1")
    assert is_test_campaign("Demo campaign")
    assert is_test_campaign("draft - do not run")
    assert not is_test_campaign("2001367: HRB: Sol Flower-Display")
    assert not is_test_campaign("")


def _rows():
    return build_rows(
        [
            {"date": "2025-06-01", "campaign_name": "2001367: HRB: Sol Flower-Display", "impressions": 100},
            {"date": "2025-06-02", "campaign_name": "2001569: MJ: Greenleaf-Summer", "impressions": 200},
            {"date": "2025-06-03", "campaign_name": "2001570: MJ: Test Account-Summer", "impressions": 300},
        ]
    )


def test_add_campaign_dimensions():
    frame = add_campaign_dimensions(_rows())
    assert frame["advertiser"].tolist() == ["Sol Flower", "Greenleaf", "Test Account"]
    assert frame["agency"].tolist() == ["Herb.co", "MediaJel", "MediaJel"]
    assert frame["agency_abbreviation"].tolist() == ["HRB", "MJ", "MJ"]


def test_filter_rows_with_no_options_keeps_everything():
    rows = _rows()
    assert filter_rows(rows, None).equals(rows)
    assert filter_rows(rows, FilterOptions()).equals(rows)


def test_filter_rows_by_agency_and_test_flag():
    filtered = filter_rows(_rows(), FilterOptions(agencies=("MJ",), exclude_test_campaigns=True))
    assert filtered["campaign_name"].tolist() == ["2001569: MJ: Greenleaf-Summer"]


def test_filter_rows_by_advertiser_and_dates():
    rows = _rows()
    by_advertiser = filter_rows(rows, FilterOptions(advertisers=("Sol Flower",)))
    assert len(by_advertiser) == 1

    by_dates = filter_rows(rows, FilterOptions(start_date=date(2025, 6, 2), end_date=date(2025, 6, 2)))
    assert by_dates["impressions"].tolist() == [200]


def test_selected_campaigns_ignores_date_range():
    names = _rows()["campaign_name"].tolist() * 2
    options = FilterOptions(agencies=("MJ",), exclude_test_campaigns=True, end_date=date(2025, 6, 1))
    assert selected_campaigns(names, options) == {"2001569: MJ: Greenleaf-Summer"}
    assert selected_campaigns(names, None) == set(names)
    assert selected_campaigns([], options) == set()
