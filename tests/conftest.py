from __future__ import annotations

import pytest

from Campaign_analytics.store import CampaignStore
from tests.campaign_test_utils import FakeSupabase, build_rows, daily_rows


@pytest.fixture()
def fake_client() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def store(fake_client: FakeSupabase) -> CampaignStore:
    return CampaignStore(fake_client, page_size=2)


@pytest.fixture()
def two_campaign_rows():
    """Eight days for two campaigns; the second stops converting mid-flight."""

    records = daily_rows(
        "2001367: HRB: Sol Flower-Display",
        "2025-06-01",
        impressions=[1000, 1000, 1300, 1300, 1300, 1300, 1300, 900],
        clicks=[10, 10, 13, 13, 13, 13, 13, 9],
        revenue=[100, 100, 130, 130, 130, 130, 130, 90],
        spend=[15, 15, 19.5, 19.5, 19.5, 19.5, 19.5, 13.5],
        transactions=[2, 2, 3, 3, 3, 3, 3, 2],
    ) + daily_rows(
        "2001569: MJ: Greenleaf-Summer",
        "2025-06-01",
        impressions=[2000] * 8,
        clicks=[20] * 8,
        revenue=[200, 200, 0, 0, 0, 200, 200, 200],
        spend=[30] * 8,
        transactions=[5, 5, 0, 0, 0, 5, 5, 5],
    )
    return build_rows(records)
