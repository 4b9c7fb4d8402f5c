from __future__ import annotations

from datetime import date, datetime

import pandas as pd
import pytest

from Campaign_analytics.dates import (
    complete_date_range,
    fill_missing_dates,
    format_date_display,
    normalize_date,
    parse_date_string,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1/2/2025", date(2025, 1, 2)),
        ("12/31/24", date(2024, 12, 31)),
        ("2025-03-07", date(2025, 3, 7)),
        ("2025-03-07T14:30:00Z", date(2025, 3, 7)),
        ("15.03.2025", date(2025, 3, 15)),
        ("15-03-2025", date(2025, 3, 15)),
        (datetime(2025, 1, 5, 13, 0), date(2025, 1, 5)),
        (pd.Timestamp("2025-02-01"), date(2025, 2, 1)),
    ],
)
def test_parse_date_string_accepts_export_formats(raw, expected):
    assert parse_date_string(raw) == expected


@pytest.mark.parametrize("raw", ["", "  ", "not a date", "13/45/2025", None, float("nan"), "NaN"])
def test_parse_date_string_rejects_garbage(raw):
    assert parse_date_string(raw) is None


def test_normalize_and_display_formats():
    assert normalize_date("3/7/2025") == "2025-03-07"
    assert normalize_date("bogus") == ""
    assert format_date_display(date(2025, 3, 7)) == "3/7/2025"
    assert format_date_display("2025-11-20") == "11/20/2025"


def test_complete_date_range_is_inclusive():
    days = complete_date_range(["2025-01-03", "2025-01-01"])
    assert days == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]
    assert complete_date_range([], start="2025-01-02", end="2025-01-01") == []


def _daily(dates, impressions):
    return pd.DataFrame(
        {
            "date": pd.to_datetime(dates),
            "impressions": pd.Series(impressions, dtype="int64"),
            "revenue": [float(value) / 10 for value in impressions],
            "label": ["x"] * len(dates),
        }
    )


def test_fill_inserts_zero_rows_for_missing_days():
    series = _daily(["2025-01-01", "2025-01-03"], [100, 300])

    filled = fill_missing_dates(series)

    assert list(filled["date"].dt.strftime("%Y-%m-%d")) == ["2025-01-01", "2025-01-02", "2025-01-03"]
    gap = filled.iloc[1]
    assert gap["impressions"] == 0
    assert gap["revenue"] == 0
    assert gap["label"] == ""
    assert filled["impressions"].dtype == "int64"
    assert list(filled.columns) == list(series.columns)


def test_fill_honours_explicit_bounds():
    series = _daily(["2025-01-02"], [50])

    filled = fill_missing_dates(series, start="2024-12-31", end="2025-01-03")

    assert len(filled) == 4
    assert filled["impressions"].tolist() == [0, 0, 50, 0]


def test_fill_is_idempotent():
    series = _daily(["2025-01-01", "2025-01-04"], [10, 40])

    once = fill_missing_dates(series)
    twice = fill_missing_dates(once)

    pd.testing.assert_frame_equal(once, twice)


def test_fill_rejects_duplicate_dates():
    series = _daily(["2025-01-01", "2025-01-01"], [10, 20])
    with pytest.raises(ValueError):
        fill_missing_dates(series)


def test_fill_without_dated_rows_returns_empty_frame():
    empty = _daily([], [])
    result = fill_missing_dates(empty)
    assert result.empty
    assert list(result.columns) == list(empty.columns)

    undated = pd.DataFrame({"date": [pd.NaT], "impressions": [1]})
    assert fill_missing_dates(undated).empty
