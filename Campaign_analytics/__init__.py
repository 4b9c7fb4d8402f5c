"""Public API for the Campaign_analytics package."""

from .aggregation import GroupBy, aggregate
from .anomaly import Anomaly, AnomalyType, Severity, detect_all_anomalies
from .config import DashboardSettings, RoasConvention, SpendMode, settings_from_dict
from .data_loader import ImportResult, load_campaign_data, normalize_rows
from .dates import fill_missing_dates
from .errors import BackendError, CampaignAnalyticsError, CsvImportError, PacingError
from .health import CampaignHealthData, score_campaign_health
from .metrics import add_derived_metrics, campaign_totals
from .pipeline import CampaignAnalysisPipeline, DashboardSession
from .trends import TrendData, calculate_trends

__all__ = [
    "Anomaly",
    "AnomalyType",
    "BackendError",
    "CampaignAnalysisPipeline",
    "CampaignAnalyticsError",
    "CampaignHealthData",
    "CsvImportError",
    "DashboardSession",
    "DashboardSettings",
    "GroupBy",
    "ImportResult",
    "PacingError",
    "RoasConvention",
    "Severity",
    "SpendMode",
    "TrendData",
    "add_derived_metrics",
    "aggregate",
    "calculate_trends",
    "campaign_totals",
    "detect_all_anomalies",
    "fill_missing_dates",
    "load_campaign_data",
    "normalize_rows",
    "score_campaign_health",
    "settings_from_dict",
]

import sys as _sys

_module = _sys.modules[__name__]
_sys.modules["campaign_analytics"] = _module
