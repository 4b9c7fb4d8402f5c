"""Configuration models for the campaign analytics dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Dict, MutableMapping, Optional, Tuple


class RoasConvention(str, Enum):
    """Which ROAS definition a call site uses.

    ``SPEND`` is revenue / spend. ``PER_MILLE`` is revenue / impressions * 1000,
    used where spend is not tracked. The two are not interchangeable.
    """

    SPEND = "spend"
    PER_MILLE = "per_mille"


class SpendMode(str, Enum):
    DEFAULT = "default"
    CUSTOM = "custom"


REQUIRED_FIELDS: Tuple[str, ...] = ("date", "campaign_name", "impressions", "clicks", "revenue")
OPTIONAL_FIELDS: Tuple[str, ...] = ("spend", "transactions")


@dataclass(slots=True)
class CsvSchema:
    """Header synonyms for each canonical field, tried in order."""

    date: Tuple[str, ...] = ("date", "day")
    campaign_name: Tuple[str, ...] = ("campaign order name", "campaign name", "campaign")
    impressions: Tuple[str, ...] = ("impressions", "imps")
    clicks: Tuple[str, ...] = ("clicks",)
    revenue: Tuple[str, ...] = ("revenue", "attributed sales")
    spend: Tuple[str, ...] = ("spend", "media spend")
    transactions: Tuple[str, ...] = ("transactions", "orders")
    keep_undated_rows: bool = False

    def synonym_map(self) -> Dict[str, Tuple[str, ...]]:
        return {name: tuple(getattr(self, name)) for name in REQUIRED_FIELDS + OPTIONAL_FIELDS}

    def label(self, name: str) -> str:
        synonyms = getattr(self, name)
        return synonyms[0].upper() if synonyms else name.upper()


@dataclass(slots=True)
class SpendSettings:
    """Spend substitution rules applied before any ratio metric."""

    mode: SpendMode = SpendMode.DEFAULT
    default_cpm: float = 15.0
    custom_cpm: float = 15.0
    forced_cpm: float = 7.0
    forced_abbreviations: Tuple[str, ...] = ("OG", "SM")
    forced_agencies: Tuple[str, ...] = ("Orangellow",)


@dataclass(slots=True)
class AnomalyThresholds:
    impression_change_pct: float = 20.0
    impression_medium_pct: float = 35.0
    impression_high_pct: float = 50.0
    transaction_drop_pct: float = 90.0
    zero_transaction_days: int = 2
    zero_streak_medium_days: int = 4
    zero_streak_high_days: int = 7


@dataclass(slots=True)
class HealthWeights:
    """Relative weight of each sub-score in the composite health score."""

    roas: float = 0.40
    delivery_pacing: float = 0.30
    burn_rate: float = 0.15
    ctr: float = 0.10
    overspend: float = 0.05

    def total(self) -> float:
        return self.roas + self.delivery_pacing + self.burn_rate + self.ctr + self.overspend


@dataclass(slots=True)
class HealthSettings:
    ctr_benchmark: float = 0.5
    weights: HealthWeights = field(default_factory=HealthWeights)


@dataclass(slots=True)
class FilterOptions:
    """Global dashboard filters applied before aggregation."""

    campaigns: Tuple[str, ...] = ()
    advertisers: Tuple[str, ...] = ()
    agencies: Tuple[str, ...] = ()
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    exclude_test_campaigns: bool = False

    def is_empty(self) -> bool:
        return not (
            self.campaigns
            or self.advertisers
            or self.agencies
            or self.start_date
            or self.end_date
            or self.exclude_test_campaigns
        )


@dataclass(slots=True)
class BackendSettings:
    url_env: str = "SUPABASE_URL"
    key_env: str = "SUPABASE_KEY"
    page_size: int = 1000
    enabled: bool = False


@dataclass(slots=True)
class DashboardSettings:
    """Execution parameters for the campaign analytics pipeline."""

    data_path: Path
    output_dir: Path = Path("reports")
    contract_terms_path: Optional[Path] = None
    schema: CsvSchema = field(default_factory=CsvSchema)
    spend: SpendSettings = field(default_factory=SpendSettings)
    anomalies: AnomalyThresholds = field(default_factory=AnomalyThresholds)
    health: HealthSettings = field(default_factory=HealthSettings)
    filters: FilterOptions = field(default_factory=FilterOptions)
    backend: BackendSettings = field(default_factory=BackendSettings)
    roas_convention: RoasConvention = RoasConvention.SPEND
    fill_date_gaps: bool = True
    include_visuals: bool = True
    cache_size: int = 32

    def resolve_paths(self) -> None:
        self.data_path = self.data_path.expanduser().resolve()
        self.output_dir = self.output_dir.expanduser().resolve()
        if self.contract_terms_path is not None:
            self.contract_terms_path = self.contract_terms_path.expanduser().resolve()

    def ensure_output_tree(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        (self.output_dir / "figures").mkdir(exist_ok=True)
        (self.output_dir / "derived").mkdir(exist_ok=True)


def _section(cls, payload: object):
    """Build dataclass ``cls`` from the keys of ``payload`` it knows about."""

    if not isinstance(payload, MutableMapping):
        return cls()
    kwargs: Dict[str, object] = {}
    for item in fields(cls):
        if item.name not in payload:
            continue
        value = payload[item.name]
        if isinstance(value, list):
            value = tuple(value)
        kwargs[item.name] = value
    return cls(**kwargs)


def _optional_date(value: object) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def settings_from_dict(payload: MutableMapping[str, object], *, base_path: Path | None = None) -> DashboardSettings:
    """Create :class:`DashboardSettings` from a dictionary (e.g., parsed JSON)."""

    base = base_path or Path.cwd()

    data_path_value = payload.get("data_path") if isinstance(payload, MutableMapping) else None
    if not data_path_value:
        raise ValueError("`data_path` is required in the configuration payload")

    output_dir_value = payload.get("output_dir")
    contract_value = payload.get("contract_terms_path")

    spend = _section(SpendSettings, payload.get("spend"))
    spend.mode = SpendMode(spend.mode)

    health_payload = payload.get("health")
    health = HealthSettings()
    if isinstance(health_payload, MutableMapping):
        health = HealthSettings(
            ctr_benchmark=float(health_payload.get("ctr_benchmark", 0.5)),
            weights=_section(HealthWeights, health_payload.get("weights")),
        )

    filters = _section(FilterOptions, payload.get("filters"))
    filters.start_date = _optional_date(filters.start_date)
    filters.end_date = _optional_date(filters.end_date)

    settings = DashboardSettings(
        data_path=Path(str(data_path_value)),
        output_dir=Path(str(output_dir_value)) if output_dir_value else Path("reports"),
        contract_terms_path=Path(str(contract_value)) if contract_value else None,
        schema=_section(CsvSchema, payload.get("schema")),
        spend=spend,
        anomalies=_section(AnomalyThresholds, payload.get("anomalies")),
        health=health,
        filters=filters,
        backend=_section(BackendSettings, payload.get("backend")),
        roas_convention=RoasConvention(payload.get("roas_convention", RoasConvention.SPEND.value)),
        fill_date_gaps=bool(payload.get("fill_date_gaps", True)),
        include_visuals=bool(payload.get("include_visuals", True)),
        cache_size=int(payload.get("cache_size", 32)),
    )
    if not settings.data_path.is_absolute():
        settings.data_path = base / settings.data_path
    if not settings.output_dir.is_absolute():
        settings.output_dir = base / settings.output_dir
    if settings.contract_terms_path is not None and not settings.contract_terms_path.is_absolute():
        settings.contract_terms_path = base / settings.contract_terms_path
    settings.resolve_paths()
    return settings
