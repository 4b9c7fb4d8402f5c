from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from Campaign_analytics.quality import run_quality_checks, write_quality_artifacts
from tests.campaign_test_utils import build_rows


def _rule(report, name):
    return next(rule for rule in report.rules if rule.name == name)


def _clean_rows():
    return build_rows(
        [
            {"date": "2025-06-01", "impressions": 1000, "clicks": 10},
            {"date": "2025-06-02", "impressions": 900, "clicks": 9},
        ]
    )


def test_fail_missing_canonical_column():
    report = run_quality_checks(_clean_rows().drop(columns=["revenue"]))
    assert report.status == "FAIL"
    assert [rule.name for rule in report.rules] == ["R1 Schema"]


def test_negative_values_fail_only_with_stop_on_fail():
    rows = _clean_rows()
    rows.loc[1, "spend"] = -5.0
    assert _rule(run_quality_checks(rows), "R2 Range").status == "FAIL"
    assert run_quality_checks(rows).status == "WARN"
    report = run_quality_checks(rows, stop_on_fail=True)
    assert report.status == "FAIL"
    assert [rule.name for rule in report.failed()] == ["R2 Range"]


def test_warn_clicks_above_impressions():
    rows = _clean_rows()
    rows.loc[0, "clicks"] = 2000
    assert _rule(run_quality_checks(rows), "R3 Clicks").status == "WARN"


def test_warn_zero_impressions_and_duplicates():
    rows = build_rows(
        [
            {"date": "2025-06-01", "impressions": 0},
            {"date": "2025-06-01", "impressions": 10},
        ]
    )
    report = run_quality_checks(rows)
    assert report.status == "WARN"
    assert _rule(report, "R5 Delivery").sample_rows == 1
    assert _rule(report, "R6 Duplicates").status == "WARN"
    assert report.stats["duplicate_rows"] == 1


def test_missing_dates_warn_unless_gaps_disallowed():
    rows = build_rows(
        [
            {"date": "2025-06-01", "impressions": 10},
            {"date": "2025-06-04", "impressions": 10},
        ]
    )
    report = run_quality_checks(rows)
    assert _rule(report, "R7 Calendar").status == "WARN"
    assert report.stats["missing_dates"] == 2

    strict = run_quality_checks(rows, allow_gaps=False, stop_on_fail=True)
    assert strict.status == "FAIL"


def test_undated_rows_warn():
    rows = build_rows([{"date": None, "impressions": 10}, {"date": "2025-06-01", "impressions": 10}])
    report = run_quality_checks(rows)
    assert _rule(report, "R4 Dates").status == "WARN"
    assert report.stats["undated_rows"] == 1


def test_totals_rows_are_ignored():
    rows = pd.concat(
        [_clean_rows(), build_rows([{"date": "2025-06-02", "campaign_name": "Totals", "impressions": 0}])],
        ignore_index=True,
    )
    report = run_quality_checks(rows)
    assert report.status == "PASS"
    assert report.stats["rows"] == 2


def test_pass_and_writes(tmp_path: Path):
    report = run_quality_checks(_clean_rows())
    assert report.status == "PASS"
    assert report.stats["min_date"] == "2025-06-01"
    assert report.stats["campaigns"] == 1

    paths = write_quality_artifacts(report, tmp_path / "quality")
    payload = json.loads(Path(paths["json"]).read_text(encoding="utf-8"))
    assert payload["status"] == "PASS"
    assert "[PASS] R7 Calendar" in Path(paths["markdown"]).read_text(encoding="utf-8")
