"""Group campaign rows and sum their additive metrics."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List

import pandas as pd

from Campaign_analytics.campaigns import extract_advertiser_name, extract_agency_info
from Campaign_analytics.config import RoasConvention
from Campaign_analytics.data_loader import METRIC_COLUMNS, is_totals_row
from Campaign_analytics.metrics import add_derived_metrics

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
DERIVED_COLUMNS = ["ctr", "roas", "aov"]


class GroupBy(str, Enum):
    DATE = "date"
    CAMPAIGN = "campaign"
    ADVERTISER = "advertiser"
    AGENCY = "agency"
    DAY_OF_WEEK = "day_of_week"
    WEEK = "week"


_KEY_COLUMNS: Dict[GroupBy, List[str]] = {
    GroupBy.DATE: ["date"],
    GroupBy.CAMPAIGN: ["campaign_name"],
    GroupBy.ADVERTISER: ["advertiser"],
    GroupBy.AGENCY: ["agency", "agency_abbreviation"],
    GroupBy.DAY_OF_WEEK: ["day_index", "day"],
    GroupBy.WEEK: ["week_start", "period_end"],
}


def output_columns(by: GroupBy) -> List[str]:
    return _KEY_COLUMNS[GroupBy(by)] + METRIC_COLUMNS + ["count"] + DERIVED_COLUMNS


def _empty_result(by: GroupBy) -> pd.DataFrame:
    return pd.DataFrame(columns=output_columns(by))


def sunday_week_start(dates: pd.Series) -> pd.Series:
    """The Sunday on or before each date."""

    dates = pd.to_datetime(dates).dt.normalize()
    offset = (dates.dt.dayofweek + 1) % 7
    return dates - pd.to_timedelta(offset, unit="D")


def _keyed_rows(frame: pd.DataFrame, by: GroupBy) -> pd.DataFrame:
    rows = frame.loc[~is_totals_row(frame["campaign_name"])].copy()
    if by in {GroupBy.DATE, GroupBy.DAY_OF_WEEK, GroupBy.WEEK}:
        rows["date"] = pd.to_datetime(rows["date"], errors="coerce").dt.normalize()
        rows = rows.dropna(subset=["date"])

    if by is GroupBy.DAY_OF_WEEK:
        rows["day_index"] = (rows["date"].dt.dayofweek + 1) % 7
        rows["day"] = rows["day_index"].map(lambda index: DAY_NAMES[index])
    elif by is GroupBy.WEEK:
        rows["week_start"] = sunday_week_start(rows["date"])
        rows["period_end"] = rows["week_start"] + pd.Timedelta(days=6)
    elif by is GroupBy.ADVERTISER:
        rows["advertiser"] = rows["campaign_name"].astype(str).map(extract_advertiser_name)
        rows = rows.loc[rows["advertiser"] != ""]
    elif by is GroupBy.AGENCY:
        info = rows["campaign_name"].astype(str).map(extract_agency_info)
        rows["agency"] = info.map(lambda item: item.agency)
        rows["agency_abbreviation"] = info.map(lambda item: item.abbreviation)
        rows = rows.loc[rows["agency"] != ""]
    return rows


def aggregate(
    frame: pd.DataFrame,
    by: GroupBy | str = GroupBy.DATE,
    *,
    roas_convention: RoasConvention = RoasConvention.SPEND,
) -> pd.DataFrame:
    """Sum ``impressions, clicks, revenue, spend, transactions`` per group.

    Each group keeps a ``count`` of contributing rows and gets ``ctr``, ``roas``
    and ``aov`` derived from its sums. Date and week groups are ordered
    ascending, day-of-week groups Sunday (0) through Saturday (6), and name
    groups case-insensitively. ``Totals`` rows never contribute.
    """

    by = GroupBy(by)
    if frame.empty:
        return _empty_result(by)

    rows = _keyed_rows(frame, by)
    if rows.empty:
        return _empty_result(by)

    keys = _KEY_COLUMNS[by]
    for column in METRIC_COLUMNS:
        rows[column] = pd.to_numeric(rows[column], errors="coerce").fillna(0)

    grouped = rows.groupby(keys, sort=False, dropna=False)
    summed = grouped[METRIC_COLUMNS].sum()
    summed["count"] = grouped.size()
    summed = summed.reset_index()

    if by in {GroupBy.DATE, GroupBy.DAY_OF_WEEK, GroupBy.WEEK}:
        summed = summed.sort_values(keys[0], kind="mergesort")
    else:
        summed = summed.sort_values(keys[0], key=lambda values: values.astype(str).str.lower(), kind="mergesort")

    result = add_derived_metrics(summed.reset_index(drop=True), roas_convention)
    logger.debug("Aggregated %d rows into %d %s groups", len(rows), len(result), by.value)
    return result[output_columns(by)]


def aggregate_by_date(frame: pd.DataFrame, roas_convention: RoasConvention = RoasConvention.SPEND) -> pd.DataFrame:
    return aggregate(frame, GroupBy.DATE, roas_convention=roas_convention)


def aggregate_by_campaign(frame: pd.DataFrame, roas_convention: RoasConvention = RoasConvention.SPEND) -> pd.DataFrame:
    return aggregate(frame, GroupBy.CAMPAIGN, roas_convention=roas_convention)


def aggregate_by_day_of_week(frame: pd.DataFrame, roas_convention: RoasConvention = RoasConvention.SPEND) -> pd.DataFrame:
    return aggregate(frame, GroupBy.DAY_OF_WEEK, roas_convention=roas_convention)


def campaign_time_series(
    frame: pd.DataFrame,
    campaign_name: str,
    roas_convention: RoasConvention = RoasConvention.SPEND,
) -> pd.DataFrame:
    """Daily series for a single campaign, used by the per-campaign spark charts."""

    if frame.empty:
        return _empty_result(GroupBy.DATE)
    rows = frame.loc[frame["campaign_name"] == campaign_name]
    return aggregate(rows, GroupBy.DATE, roas_convention=roas_convention)
