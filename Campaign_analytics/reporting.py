"""Reporting helpers for campaign analytics runs."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional
from pathlib import Path
import json

import pandas as pd

from Campaign_analytics.anomaly import Anomaly, anomaly_counts, format_anomaly_message
from Campaign_analytics.config import DashboardSettings
from Campaign_analytics.data_loader import ImportResult
from Campaign_analytics.metrics import CampaignTotals
from Campaign_analytics.quality import QualityReport
from Campaign_analytics.trends import TrendData


def _frame_to_json_records(df: pd.DataFrame) -> list[dict[str, object]]:
    if df.empty:
        return []
    return json.loads(df.to_json(orient="records", date_format="iso"))


def dataframe_to_csv(df: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if df.empty:
        path.write_text("", encoding="utf-8")
    else:
        df.to_csv(path, index=False)


def dataframe_to_markdown(df: pd.DataFrame) -> str:
    if df.empty:
        return "_No data available._"
    try:
        return df.to_markdown(index=False)
    except ImportError:
        return df.to_string(index=False)


def _format_trend(value: float) -> str:
    arrow = "up" if value > 0 else "down" if value < 0 else "flat"
    return f"{value:+.1f}% ({arrow})"


def build_summary_payload(
    *,
    settings: DashboardSettings,
    imported: ImportResult,
    totals: CampaignTotals,
    trends: TrendData,
    daily: pd.DataFrame,
    campaigns: pd.DataFrame,
    anomalies: List[Anomaly],
    quality: QualityReport,
    pacing: pd.DataFrame,
    health: pd.DataFrame,
) -> Dict:
    payload: Dict[str, object] = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "data_path": str(settings.data_path),
        "rows_analyzed": imported.row_count,
        "campaign_count": len(imported.campaigns),
        "column_aliases": imported.column_aliases,
        "import_warnings": list(imported.warnings),
        "roas_convention": settings.roas_convention.value,
        "spend_mode": settings.spend.mode.value,
        "totals": totals.as_dict(),
        "trends": asdict(trends),
        "quality_status": quality.status,
        "anomaly_counts": anomaly_counts(anomalies),
        "report_version": "campaign-analytics/1.0",
    }

    if not daily.empty:
        payload["daily"] = _frame_to_json_records(daily)
    if not campaigns.empty:
        payload["top_campaigns"] = _frame_to_json_records(campaigns.nlargest(10, "revenue"))
    if anomalies:
        payload["anomalies"] = [anomaly.to_record() for anomaly in anomalies[:50]]
    if not pacing.empty:
        payload["pacing"] = _frame_to_json_records(pacing)
    if not health.empty:
        payload["health"] = _frame_to_json_records(health)

    return payload


def build_markdown_report(
    *,
    settings: DashboardSettings,
    rows: int,
    totals: CampaignTotals,
    trends: TrendData,
    campaigns: pd.DataFrame,
    day_of_week: pd.DataFrame,
    anomalies: List[Anomaly],
    pacing: pd.DataFrame,
    health: pd.DataFrame,
    quality: Optional[QualityReport] = None,
) -> str:
    roas_label = "ROAS (per 1k impressions)" if settings.roas_convention.value == "per_mille" else "ROAS"
    lines = [
        "# Campaign Performance Summary",
        "",
        f"**Dataset:** `{settings.data_path.name}`",
        f"**Rows analyzed:** {rows:,}",
        f"**Data quality:** {quality.status}" if quality else "",
        "",
        "## Key Metrics",
        f"- **Impressions:** {totals.impressions:,.0f} ({_format_trend(trends.impressions)} day over day)",
        f"- **Clicks:** {totals.clicks:,.0f} ({_format_trend(trends.clicks)})",
        f"- **CTR:** {totals.ctr:.2f}% ({_format_trend(trends.ctr)})",
        f"- **Transactions:** {totals.transactions:,.0f} ({_format_trend(trends.transactions)})",
        f"- **Revenue:** ${totals.revenue:,.2f} ({_format_trend(trends.revenue)})",
        f"- **Spend:** ${totals.spend:,.2f} ({_format_trend(trends.spend)})",
        f"- **{roas_label}:** {totals.roas:.2f} ({_format_trend(trends.roas)})",
        f"- **Average order value:** ${totals.aov:,.2f}",
    ]

    lines.extend(["", "## Campaign performance", ""])
    lines.append(dataframe_to_markdown(campaigns))

    lines.extend(["", "## Day of week", ""])
    lines.append(dataframe_to_markdown(day_of_week))

    lines.extend(["", "## Anomalies", ""])
    active = [anomaly for anomaly in anomalies if not anomaly.is_ignored]
    if active:
        lines.extend(
            f"- [{anomaly.severity.value.upper()}] {anomaly.date_detected.isoformat()} {anomaly.campaign_name}: "
            f"{format_anomaly_message(anomaly)}"
            for anomaly in active[:25]
        )
        if len(active) > 25:
            lines.append(f"- ... and {len(active) - 25} more")
    else:
        lines.append("_No anomalies detected._")

    if not pacing.empty:
        lines.extend(["", "## Pacing", ""])
        columns = [
            col
            for col in ["campaign_name", "reference_date", "actual_impressions", "expected_impressions", "current_pacing", "status"]
            if col in pacing.columns
        ]
        lines.append(dataframe_to_markdown(pacing[columns]))

    if not health.empty:
        lines.extend(["", "## Campaign health", ""])
        columns = [col for col in ["campaign_name", "health_score", "band", "roas", "ctr"] if col in health.columns]
        lines.append(dataframe_to_markdown(health[columns].sort_values("health_score")))

    if quality and quality.failed():
        lines.extend(["", "## Data quality failures", ""])
        lines.extend(f"- {rule.name}: {rule.detail}" for rule in quality.failed())

    return "\n".join(line for line in lines if line is not None)
