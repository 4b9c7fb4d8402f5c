"""High-level pipeline orchestration."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from Campaign_analytics.aggregation import (
    aggregate_by_campaign,
    aggregate_by_date,
    aggregate_by_day_of_week,
    campaign_time_series,
)
from Campaign_analytics.anomaly import (
    Anomaly,
    anomalies_to_frame,
    anomalies_within,
    apply_suppressions,
    detect_all_anomalies,
)
from Campaign_analytics.cache import ResultCache
from Campaign_analytics.campaigns import add_campaign_dimensions, filter_rows
from Campaign_analytics.config import (
    AnomalyThresholds,
    CsvSchema,
    DashboardSettings,
    FilterOptions,
    HealthSettings,
    RoasConvention,
    SpendSettings,
    settings_from_dict,
)
from Campaign_analytics.data_loader import CsvSource, ImportResult, load_campaign_data
from Campaign_analytics.dates import fill_missing_dates
from Campaign_analytics.errors import BackendError
from Campaign_analytics.health import CampaignHealthData, health_to_frame, score_all_campaigns
from Campaign_analytics.metrics import CampaignTotals, apply_spend_mode, campaign_totals
from Campaign_analytics.pacing import CampaignPacing, ContractTerms, load_contract_terms, pacing_to_frame, process_campaigns
from Campaign_analytics.quality import run_quality_checks, write_quality_artifacts
from Campaign_analytics.reporting import build_markdown_report, build_summary_payload, dataframe_to_csv
from Campaign_analytics.store import CampaignStore
from Campaign_analytics.trends import TrendData, calculate_trends
from Campaign_analytics.visualization import generate_visuals

logger = logging.getLogger(__name__)


@dataclass
class DashboardSession:
    """Settings, optional backend store and result cache for one interactive user.

    Every computation goes through the cache, so re-rendering a page with the
    same rows and parameters reuses the earlier result.
    """

    schema: CsvSchema = field(default_factory=CsvSchema)
    spend: SpendSettings = field(default_factory=SpendSettings)
    thresholds: AnomalyThresholds = field(default_factory=AnomalyThresholds)
    health: HealthSettings = field(default_factory=HealthSettings)
    roas_convention: RoasConvention = RoasConvention.SPEND
    store: Optional[CampaignStore] = None
    cache: ResultCache = field(default_factory=ResultCache)

    @classmethod
    def from_settings(cls, settings: DashboardSettings, store: CampaignStore | None = None) -> "DashboardSession":
        return cls(
            schema=settings.schema,
            spend=settings.spend,
            thresholds=settings.anomalies,
            health=settings.health,
            roas_convention=settings.roas_convention,
            store=store,
            cache=ResultCache(settings.cache_size),
        )

    def import_csv(self, source: CsvSource, *, persist: bool = False) -> ImportResult:
        """Normalize an upload; with ``persist`` the rows replace the stored campaign data."""

        result = load_campaign_data(source, self.schema)
        if persist and self.store is not None:
            self.store.replace_campaign_rows(result.frame)
        return result

    def prepare(self, frame: pd.DataFrame, filters: FilterOptions | None = None) -> pd.DataFrame:
        filtered = filter_rows(frame, filters)
        return self.cache.get_or_compute(
            "spend_mode",
            filtered,
            {"spend": self.spend},
            lambda: apply_spend_mode(filtered, self.spend),
        )

    def daily(self, frame: pd.DataFrame, *, fill_gaps: bool = True, filters: FilterOptions | None = None) -> pd.DataFrame:
        start = filters.start_date if filters else None
        end = filters.end_date if filters else None

        def compute() -> pd.DataFrame:
            series = aggregate_by_date(frame, self.roas_convention)
            return fill_missing_dates(series, start, end) if fill_gaps else series

        params = {"roas": self.roas_convention, "fill": fill_gaps, "start": start, "end": end}
        return self.cache.get_or_compute("daily", frame, params, compute)

    def by_campaign(self, frame: pd.DataFrame) -> pd.DataFrame:
        return self.cache.get_or_compute(
            "by_campaign",
            frame,
            {"roas": self.roas_convention},
            lambda: aggregate_by_campaign(frame, self.roas_convention),
        )

    def by_day_of_week(self, frame: pd.DataFrame) -> pd.DataFrame:
        return self.cache.get_or_compute(
            "by_day_of_week",
            frame,
            {"roas": self.roas_convention},
            lambda: aggregate_by_day_of_week(frame, self.roas_convention),
        )

    def campaign_series(self, frame: pd.DataFrame, campaign_name: str) -> pd.DataFrame:
        return self.cache.get_or_compute(
            "campaign_series",
            frame,
            {"campaign": campaign_name, "roas": self.roas_convention},
            lambda: campaign_time_series(frame, campaign_name, self.roas_convention),
        )

    def totals(self, frame: pd.DataFrame) -> CampaignTotals:
        return campaign_totals(frame, self.roas_convention)

    def trends(self, frame: pd.DataFrame) -> TrendData:
        return calculate_trends(self.daily(frame, fill_gaps=False), self.roas_convention)

    def anomalies(self, frame: pd.DataFrame, filters: FilterOptions | None = None) -> List[Anomaly]:
        """Detect candidates, merge the stored ignore flags and durations, then apply ``filters``.

        ``frame`` must be the whole upload: the detectors skip the dataset's latest
        date, which a filtered subset would misplace.
        """

        candidates = self.cache.get_or_compute(
            "anomalies",
            frame,
            {"thresholds": self.thresholds},
            lambda: detect_all_anomalies(frame, self.thresholds),
        )
        if self.store is None:
            merged = list(candidates)
        else:
            try:
                self.store.sync_anomalies(candidates)
            except BackendError as exc:
                logger.warning("Anomalies were not saved: %s", exc)
            merged = apply_suppressions(candidates, self.store.fetch_anomaly_records())
        return anomalies_within(merged, filters)

    def set_ignored(self, anomaly: Anomaly, ignored: bool = True) -> None:
        if self.store is None:
            raise BackendError("No backend configured; ignore flags cannot be saved")
        if anomaly.id is None:
            raise BackendError(f"Anomaly for {anomaly.campaign_name!r} has not been saved yet")
        self.store.set_anomaly_ignored(anomaly.id, ignored)
        self.store.log_activity(
            "anomaly_ignored" if ignored else "anomaly_restored",
            {"campaign_name": anomaly.campaign_name, "anomaly_type": anomaly.anomaly_type.value},
        )

    def contract_terms(self, path: Path | None = None) -> List[ContractTerms]:
        if path is not None:
            return load_contract_terms(path)
        if self.store is not None:
            return self.store.fetch_contract_terms()
        return []

    def pacing(
        self,
        frame: pd.DataFrame,
        terms: List[ContractTerms],
        reference_frame: pd.DataFrame | None = None,
    ) -> List[CampaignPacing]:
        if not terms:
            return []
        return process_campaigns(terms, frame, reference_frame)

    def health_scores(self, frame: pd.DataFrame, pacing: List[CampaignPacing]) -> List[CampaignHealthData]:
        return score_all_campaigns(frame, pacing, self.health, self.roas_convention)


class CampaignAnalysisPipeline:
    """Run the batch campaign analysis and write its artifacts."""

    def __init__(self, settings: DashboardSettings, store: CampaignStore | None = None) -> None:
        self.settings = settings
        self.settings.resolve_paths()
        self.settings.ensure_output_tree()
        if store is None and settings.backend.enabled:
            store = CampaignStore.from_env(settings.backend)
        self.session = DashboardSession.from_settings(settings, store)

    @classmethod
    def from_config_file(cls, path: Path, store: CampaignStore | None = None) -> "CampaignAnalysisPipeline":
        payload = json.loads(path.read_text(encoding="utf-8"))
        settings = settings_from_dict(payload, base_path=path.parent)
        return cls(settings, store)

    def run(self) -> Dict[str, object]:
        settings = self.settings
        session = self.session
        output_dir = settings.output_dir

        imported = session.import_csv(settings.data_path)
        quality = run_quality_checks(imported.frame)
        quality_paths = write_quality_artifacts(quality, output_dir)

        frame = session.prepare(imported.frame, settings.filters)
        daily = session.daily(frame, fill_gaps=settings.fill_date_gaps, filters=settings.filters)
        campaigns = session.by_campaign(frame)
        day_of_week = session.by_day_of_week(frame)
        totals = session.totals(frame)
        trends = session.trends(frame)
        anomalies = session.anomalies(imported.frame, settings.filters)

        terms = session.contract_terms(settings.contract_terms_path)
        pacing = session.pacing(frame, terms, reference_frame=imported.frame)
        health = session.health_scores(frame, pacing)

        pacing_frame = pacing_to_frame(pacing)
        health_frame = health_to_frame(health)
        anomaly_frame = anomalies_to_frame(anomalies)

        figures = (
            generate_visuals(output_dir=output_dir, daily=daily, day_of_week=day_of_week, health=health_frame)
            if settings.include_visuals
            else {}
        )

        summary_payload = build_summary_payload(
            settings=settings,
            imported=imported,
            totals=totals,
            trends=trends,
            daily=daily,
            campaigns=campaigns,
            anomalies=anomalies,
            quality=quality,
            pacing=pacing_frame,
            health=health_frame,
        )
        summary_payload["figures"] = figures

        report_text = build_markdown_report(
            settings=settings,
            rows=imported.row_count,
            totals=totals,
            trends=trends,
            campaigns=campaigns,
            day_of_week=day_of_week,
            anomalies=anomalies,
            pacing=pacing_frame,
            health=health_frame,
            quality=quality,
        )

        metrics_path = output_dir / "metrics_summary.json"
        metrics_path.write_text(json.dumps(summary_payload, indent=2, default=str), encoding="utf-8")

        report_path = output_dir / "campaign_analysis_report.md"
        report_path.write_text(report_text, encoding="utf-8")

        dataframe_to_csv(daily, output_dir / "daily_performance.csv")
        dataframe_to_csv(campaigns, output_dir / "campaign_performance.csv")
        dataframe_to_csv(day_of_week, output_dir / "day_of_week_performance.csv")
        dataframe_to_csv(anomaly_frame, output_dir / "anomalies.csv")
        dataframe_to_csv(pacing_frame, output_dir / "pacing.csv")
        dataframe_to_csv(health_frame, output_dir / "campaign_health.csv")
        dataframe_to_csv(add_campaign_dimensions(frame), output_dir / "derived" / "normalized_rows.csv")

        settings_snapshot = asdict(settings)
        settings_snapshot["data_path"] = str(settings.data_path)
        settings_snapshot["output_dir"] = str(settings.output_dir)

        logger.info(
            "Analysed %d rows: %d anomalies, %d paced campaigns, %d health scores",
            imported.row_count,
            len(anomalies),
            len(pacing),
            len(health),
        )

        return {
            "settings": settings_snapshot,
            "import": imported,
            "quality": quality,
            "quality_paths": quality_paths,
            "frame": frame,
            "daily": daily,
            "campaign": campaigns,
            "day_of_week": day_of_week,
            "totals": totals,
            "trends": trends,
            "anomalies": anomalies,
            "pacing": pacing,
            "health": health,
            "figures": figures,
            "summary_path": metrics_path,
            "report_path": report_path,
        }
