from __future__ import annotations

import pandas as pd
import pytest

from Campaign_analytics.config import CsvSchema
from Campaign_analytics.data_loader import (
    CANONICAL_COLUMNS,
    coerce_numeric,
    load_campaign_data,
    match_headers,
    normalize_rows,
)
from Campaign_analytics.errors import CsvImportError
from tests.campaign_test_utils import sample_export


def test_normalize_maps_headers_and_sanitizes_numbers():
    result = normalize_rows(sample_export())
    frame = result.frame

    assert list(frame.columns) == CANONICAL_COLUMNS
    assert result.row_count == 4
    first = frame.iloc[0]
    assert first["date"] == pd.Timestamp("2025-06-01")
    assert first["campaign_name"] == "2001367: HRB: Sol Flower-Display"
    assert first["impressions"] == 1000
    assert first["revenue"] == pytest.approx(100.0)
    assert frame["revenue"].sum() == pytest.approx(350.5)
    for column in ("impressions", "clicks", "transactions"):
        assert frame[column].dtype == "int64"
    assert result.column_aliases["campaign_name"] == "Campaign Order Name"


def test_totals_rows_are_filtered_with_warning():
    result = normalize_rows(sample_export())
    assert "totals" not in result.frame["campaign_name"].str.lower().tolist()
    assert "Filtered out 1 invalid rows" in result.warnings
    assert result.dropped_rows == 1


def test_zero_impression_rows_are_reported():
    result = normalize_rows(sample_export())
    assert "Found 1 rows with zero impressions" in result.warnings


def test_rows_sorted_by_date_then_campaign():
    raw = sample_export().iloc[[3, 2, 1, 0]]
    frame = normalize_rows(raw).frame
    assert frame["date"].is_monotonic_increasing
    assert frame["campaign_name"].tolist()[:2] == [
        "2001367: HRB: Sol Flower-Display",
        "2001569: MJ: Greenleaf-Summer",
    ]


def test_missing_required_column_aborts_import():
    raw = sample_export().drop(columns=["Impressions", "Revenue"])
    with pytest.raises(CsvImportError) as excinfo:
        normalize_rows(raw)
    assert str(excinfo.value) == "Required columns missing: IMPRESSIONS, REVENUE"
    assert excinfo.value.missing_columns == ["IMPRESSIONS", "REVENUE"]


def test_optional_columns_default_to_zero():
    raw = sample_export().drop(columns=["Spend", "Transactions"])
    frame = normalize_rows(raw).frame
    assert (frame["spend"] == 0).all()
    assert (frame["transactions"] == 0).all()


def test_first_matching_synonym_wins():
    matched = match_headers(["Campaign", " campaign order name "], CsvSchema().synonym_map())
    assert matched["campaign_name"] == " campaign order name "


def test_unparseable_dates_are_dropped_or_kept():
    raw = sample_export()
    raw.loc[0, "Date"] = "sometime"

    dropped = normalize_rows(raw)
    assert dropped.row_count == 3
    assert any("unparseable dates dropped" in message for message in dropped.warnings)

    kept = normalize_rows(raw, CsvSchema(keep_undated_rows=True))
    assert kept.row_count == 4
    assert kept.frame["date"].isna().sum() == 1
    assert pd.isna(kept.frame["date"].iloc[-1])


def test_bad_numbers_become_zero():
    values = pd.Series(["$1,200.50", "abc", "", "12%", "(5)"])
    assert coerce_numeric(values).tolist() == [1200.5, 0.0, 0.0, 12.0, -5.0]


def test_load_from_csv_file(tmp_path):
    path = tmp_path / "export.csv"
    sample_export().to_csv(path, index=False)

    result = load_campaign_data(path)

    assert result.campaigns == ["2001367: HRB: Sol Flower-Display", "2001569: MJ: Greenleaf-Summer"]
    assert result.frame["impressions"].sum() == 4500


def test_empty_file_is_an_import_error(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(CsvImportError):
        load_campaign_data(path)


def test_header_only_file_yields_no_rows(tmp_path):
    path = tmp_path / "headers.csv"
    path.write_text("Date,Campaign,Impressions,Clicks,Revenue\n", encoding="utf-8")
    result = load_campaign_data(path)
    assert result.frame.empty
    assert "No valid data rows found" in result.warnings
