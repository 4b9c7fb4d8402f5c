from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Literal, Optional

import json
import pandas as pd

from Campaign_analytics.data_loader import CANONICAL_COLUMNS, METRIC_COLUMNS, is_totals_row

RuleStatus = Literal["PASS", "WARN", "FAIL"]


@dataclass(slots=True)
class RuleResult:
    name: str
    status: RuleStatus
    detail: str
    sample_rows: Optional[int] = None


@dataclass(slots=True)
class QualityReport:
    status: RuleStatus
    rules: List[RuleResult]
    stats: Dict[str, object]

    def failed(self) -> List[RuleResult]:
        return [rule for rule in self.rules if rule.status == "FAIL"]


def _preview(values: List[str], limit: int = 5) -> str:
    return ", ".join(values[:limit]) + (" ..." if len(values) > limit else "")


def run_quality_checks(frame: pd.DataFrame, *, allow_gaps: bool = True, stop_on_fail: bool = False) -> QualityReport:
    """Sanity rules over a normalized campaign frame.

    ``stop_on_fail`` makes any failing rule fail the whole report; otherwise
    failures are reported and the overall status degrades to ``WARN``.
    """

    rules: List[RuleResult] = []

    # R1 Schema
    missing_cols = [col for col in CANONICAL_COLUMNS if col not in frame.columns]
    if missing_cols:
        rules.append(
            RuleResult(
                name="R1 Schema",
                status="FAIL",
                detail=f"Missing canonical columns: {', '.join(missing_cols)}",
                sample_rows=len(missing_cols),
            )
        )
        return QualityReport(status="FAIL", rules=rules, stats={"rows": int(len(frame))})
    rules.append(RuleResult(name="R1 Schema", status="PASS", detail="All canonical columns present"))

    rows = frame.loc[~is_totals_row(frame["campaign_name"])] if not frame.empty else frame
    dates = pd.to_datetime(rows["date"], errors="coerce")

    # R2 Range sanity (non-negative)
    negative_columns: Dict[str, int] = {}
    for col in METRIC_COLUMNS:
        count = int((pd.to_numeric(rows[col], errors="coerce").fillna(0) < 0).sum())
        if count > 0:
            negative_columns[col] = count
    if negative_columns:
        detail = ", ".join(f"{col} ({count})" for col, count in negative_columns.items())
        rules.append(
            RuleResult(
                name="R2 Range",
                status="FAIL",
                detail=f"Negative values detected in: {detail}",
                sample_rows=sum(negative_columns.values()),
            )
        )
    else:
        rules.append(RuleResult(name="R2 Range", status="PASS", detail="All metric columns are non-negative"))

    # R3 Clicks cannot exceed impressions
    over_clicked = int((rows["clicks"] > rows["impressions"]).sum())
    rules.append(
        RuleResult(
            name="R3 Clicks",
            status="WARN" if over_clicked else "PASS",
            detail=f"{over_clicked} rows report more clicks than impressions"
            if over_clicked
            else "Clicks never exceed impressions",
            sample_rows=over_clicked or None,
        )
    )

    # R4 Undated rows
    undated = int(dates.isna().sum())
    rules.append(
        RuleResult(
            name="R4 Dates",
            status="WARN" if undated else "PASS",
            detail=f"{undated} rows have no usable date" if undated else "Every row has a date",
            sample_rows=undated or None,
        )
    )

    # R5 Zero impressions
    zero_rows = int((rows["impressions"] == 0).sum())
    rules.append(
        RuleResult(
            name="R5 Delivery",
            status="WARN" if zero_rows else "PASS",
            detail=f"Found {zero_rows} rows with zero impressions" if zero_rows else "Every row delivered impressions",
            sample_rows=zero_rows or None,
        )
    )

    # R6 Duplicate campaign-days
    dated = rows.assign(date=dates).dropna(subset=["date"])
    duplicate_count = int(dated.duplicated(subset=["date", "campaign_name"]).sum())
    rules.append(
        RuleResult(
            name="R6 Duplicates",
            status="WARN" if duplicate_count else "PASS",
            detail=f"Found {duplicate_count} repeated campaign-day rows (they are summed)"
            if duplicate_count
            else "No repeated campaign-day rows",
            sample_rows=duplicate_count or None,
        )
    )

    # R7 Calendar continuity
    min_date = dated["date"].min() if not dated.empty else None
    max_date = dated["date"].max() if not dated.empty else None
    missing_dates: List[str] = []
    if min_date is not None and max_date is not None:
        expected = pd.date_range(min_date, max_date, freq="D")
        missing = expected.difference(pd.DatetimeIndex(dated["date"].unique()))
        missing_dates = [ts.strftime("%Y-%m-%d") for ts in missing]
    if missing_dates:
        rules.append(
            RuleResult(
                name="R7 Calendar",
                status="WARN" if allow_gaps else "FAIL",
                detail=f"Missing dates detected ({len(missing_dates)}): {_preview(missing_dates)}",
                sample_rows=len(missing_dates),
            )
        )
    else:
        rules.append(RuleResult(name="R7 Calendar", status="PASS", detail="No missing dates between min and max"))

    has_fail = any(rule.status == "FAIL" for rule in rules)
    has_warn = any(rule.status == "WARN" for rule in rules)

    if stop_on_fail and has_fail:
        overall_status: RuleStatus = "FAIL"
    elif has_fail or has_warn:
        overall_status = "WARN"
    else:
        overall_status = "PASS"

    stats = {
        "rows": int(len(rows)),
        "campaigns": int(rows["campaign_name"].nunique()),
        "min_date": min_date.strftime("%Y-%m-%d") if min_date is not None else None,
        "max_date": max_date.strftime("%Y-%m-%d") if max_date is not None else None,
        "missing_dates": len(missing_dates),
        "duplicate_rows": duplicate_count,
        "undated_rows": undated,
    }

    return QualityReport(status=overall_status, rules=rules, stats=stats)


def write_quality_artifacts(report: QualityReport, output_dir: Path) -> Dict[str, str]:
    output_dir.mkdir(parents=True, exist_ok=True)

    report_dict = asdict(report)
    json_path = output_dir / "quality_report.json"
    json_path.write_text(json.dumps(report_dict, indent=2), encoding="utf-8")

    lines = [
        "# Data Quality Report",
        f"**Status:** {report.status}",
        "",
        "## Summary",
        f"- Rows: {report.stats.get('rows')}",
        f"- Campaigns: {report.stats.get('campaigns')}",
        f"- Date range: {report.stats.get('min_date')} -> {report.stats.get('max_date')}",
        f"- Missing dates: {report.stats.get('missing_dates')}",
        f"- Repeated campaign-days: {report.stats.get('duplicate_rows')}",
        "",
        "## Rules",
    ]
    for rule in report.rules:
        sample = f" (count={rule.sample_rows})" if rule.sample_rows else ""
        lines.append(f"- [{rule.status}] {rule.name}: {rule.detail}{sample}")
    markdown_path = output_dir / "quality_report.md"
    markdown_path.write_text("\n".join(lines), encoding="utf-8")

    return {"json": str(json_path), "markdown": str(markdown_path)}
