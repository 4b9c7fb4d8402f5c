from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from Campaign_analytics.config import RoasConvention, SpendMode, settings_from_dict

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_data_path_is_required():
    with pytest.raises(ValueError):
        settings_from_dict({"output_dir": "reports"})


def test_relative_paths_resolve_against_base(tmp_path: Path):
    settings = settings_from_dict(
        {"data_path": "data/export.csv", "contract_terms_path": "data/terms.csv"},
        base_path=tmp_path,
    )
    assert settings.data_path == (tmp_path / "data" / "export.csv").resolve()
    assert settings.contract_terms_path == (tmp_path / "data" / "terms.csv").resolve()
    assert settings.output_dir == (tmp_path / "reports").resolve()


def test_sections_are_parsed(tmp_path: Path):
    settings = settings_from_dict(
        {
            "data_path": "export.csv",
            "roas_convention": "per_mille",
            "spend": {"mode": "custom", "custom_cpm": 9.5, "forced_abbreviations": ["OG"]},
            "anomalies": {"impression_change_pct": 25.0, "unknown_key": 1},
            "health": {"ctr_benchmark": 0.8, "weights": {"roas": 0.5}},
            "filters": {"agencies": ["MJ"], "start_date": "2025-06-01"},
            "schema": {"campaign_name": ["io name"]},
            "backend": {"page_size": 500},
            "fill_date_gaps": False,
        },
        base_path=tmp_path,
    )
    assert settings.roas_convention is RoasConvention.PER_MILLE
    assert settings.spend.mode is SpendMode.CUSTOM
    assert settings.spend.custom_cpm == 9.5
    assert settings.spend.forced_abbreviations == ("OG",)
    assert settings.anomalies.impression_change_pct == 25.0
    assert settings.health.ctr_benchmark == 0.8
    assert settings.health.weights.roas == 0.5
    assert settings.health.weights.delivery_pacing == 0.30
    assert settings.filters.agencies == ("MJ",)
    assert settings.filters.start_date == date(2025, 6, 1)
    assert settings.schema.campaign_name == ("io name",)
    assert settings.backend.page_size == 500
    assert not settings.backend.enabled
    assert not settings.fill_date_gaps


def test_example_config_points_at_sample_data():
    path = REPO_ROOT / "configs" / "example.json"
    settings = settings_from_dict(json.loads(path.read_text(encoding="utf-8")), base_path=path.parent)
    assert settings.data_path.exists()
    assert settings.contract_terms_path is not None and settings.contract_terms_path.exists()
    assert settings.filters.exclude_test_campaigns
