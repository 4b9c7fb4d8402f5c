"""Utilities for loading and normalizing campaign performance exports."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Dict, Iterable, List, Mapping, Sequence, Union

import numpy as np
import pandas as pd

from Campaign_analytics.config import REQUIRED_FIELDS, CsvSchema
from Campaign_analytics.dates import parse_date_series
from Campaign_analytics.errors import CsvImportError

logger = logging.getLogger(__name__)

CANONICAL_COLUMNS = ["date", "campaign_name", "impressions", "clicks", "revenue", "spend", "transactions"]
METRIC_COLUMNS = ["impressions", "clicks", "revenue", "spend", "transactions"]
COUNT_COLUMNS = ["impressions", "clicks", "transactions"]
TOTALS_SENTINEL = "totals"

CsvSource = Union[str, Path, IO[str], IO[bytes], pd.DataFrame]


@dataclass(slots=True)
class ImportResult:
    """Normalized rows plus everything the import had to say about them."""

    frame: pd.DataFrame
    warnings: List[str] = field(default_factory=list)
    dropped_rows: int = 0
    column_aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def row_count(self) -> int:
        return int(len(self.frame))

    @property
    def campaigns(self) -> list[str]:
        return sorted(self.frame["campaign_name"].unique(), key=str.lower) if not self.frame.empty else []


def _normalize_header(name: object) -> str:
    return " ".join(str(name).strip().lower().split())


def match_headers(headers: Iterable[object], synonyms: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    """Map each canonical field onto the first header matching one of its synonyms.

    Synonyms are tried in order and compared case-insensitively after trimming,
    so the earliest synonym wins even if a later one also appears.
    """

    lookup: Dict[str, str] = {}
    for header in headers:
        lookup.setdefault(_normalize_header(header), str(header))

    matched: Dict[str, str] = {}
    for name, candidates in synonyms.items():
        for candidate in candidates:
            header = lookup.get(_normalize_header(candidate))
            if header is not None:
                matched[name] = header
                break
    return matched


def _sanitize_numeric_series(series: pd.Series) -> pd.Series:
    if series.dtype.kind not in {"O", "U", "S"}:
        return series
    cleaned = (
        series.astype(str)
        .str.replace(r"[,%$]", "", regex=True)
        .str.replace(r"\s", "", regex=True)
        .str.replace(r"^\(([^)]+)\)$", r"-\1", regex=True)
    )
    return cleaned


def coerce_numeric(series: pd.Series) -> pd.Series:
    """Coerce to float; anything unreadable, missing or infinite becomes ``0``."""

    numeric = pd.to_numeric(_sanitize_numeric_series(series), errors="coerce")
    return numeric.replace([np.inf, -np.inf], np.nan).fillna(0.0).astype(float)


def _text_column(series: pd.Series) -> pd.Series:
    text = series.astype(object).where(series.notna(), "").astype(str).str.strip()
    return text.mask(text.str.lower().isin({"nan", "nat", "none"}), "")


def is_totals_row(values: pd.Series) -> pd.Series:
    return values.astype(str).str.strip().str.lower() == TOTALS_SENTINEL


def read_campaign_csv(source: CsvSource) -> pd.DataFrame:
    """Read a CSV with every cell as text so coercion rules stay in one place."""

    if isinstance(source, pd.DataFrame):
        return source.copy()
    try:
        return pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError as exc:
        raise CsvImportError("The uploaded file is empty") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise CsvImportError(f"Unable to parse CSV: {exc}") from exc
    except OSError as exc:
        raise CsvImportError(f"Unable to read CSV: {exc}") from exc


def normalize_rows(raw: pd.DataFrame, schema: CsvSchema | None = None) -> ImportResult:
    """Turn raw export rows into canonical campaign rows.

    Aborts with :class:`CsvImportError` when a required column is missing. Rows
    without a campaign or date, and upstream ``Totals`` summary rows, are filtered
    out. Rows whose date cannot be parsed are dropped with a warning unless
    ``schema.keep_undated_rows`` is set, in which case they keep ``NaT``.
    """

    schema = schema or CsvSchema()
    matched = match_headers(raw.columns, schema.synonym_map())

    missing = [schema.label(name) for name in REQUIRED_FIELDS if name not in matched]
    if missing:
        raise CsvImportError(f"Required columns missing: {', '.join(missing)}", missing_columns=missing)

    warnings: List[str] = []
    campaign = _text_column(raw[matched["campaign_name"]])
    raw_dates = _text_column(raw[matched["date"]])

    frame = pd.DataFrame({"campaign_name": campaign}, index=raw.index)
    for column in METRIC_COLUMNS:
        frame[column] = coerce_numeric(raw[matched[column]]) if column in matched else 0.0

    invalid = (campaign == "") | (raw_dates == "") | is_totals_row(campaign) | is_totals_row(raw_dates)
    invalid_count = int(invalid.sum())
    if invalid_count:
        message = f"Filtered out {invalid_count} invalid rows"
        logger.warning(message)
        warnings.append(message)

    frame = frame.loc[~invalid]
    raw_dates = raw_dates.loc[~invalid]
    parsed = parse_date_series(raw_dates)

    undated = parsed.isna()
    undated_count = int(undated.sum())
    if undated_count:
        sample = ", ".join(raw_dates.loc[undated].unique()[:5])
        outcome = "kept without a date" if schema.keep_undated_rows else "dropped"
        message = f"{undated_count} rows with unparseable dates {outcome}: {sample}"
        logger.warning(message)
        warnings.append(message)
        if not schema.keep_undated_rows:
            frame = frame.loc[~undated]
            parsed = parsed.loc[~undated]

    frame.insert(0, "date", parsed)
    for column in COUNT_COLUMNS:
        frame[column] = frame[column].round().astype("int64")

    zero_impressions = int((frame["impressions"] == 0).sum())
    if zero_impressions:
        warnings.append(f"Found {zero_impressions} rows with zero impressions")
    if frame.empty:
        warnings.append("No valid data rows found")

    frame = frame.sort_values(["date", "campaign_name"], kind="mergesort", na_position="last")
    frame = frame.reset_index(drop=True)[CANONICAL_COLUMNS]

    return ImportResult(
        frame=frame,
        warnings=warnings,
        dropped_rows=int(len(raw) - len(frame)),
        column_aliases=dict(matched),
    )


def load_campaign_data(source: CsvSource, schema: CsvSchema | None = None) -> ImportResult:
    raw = read_campaign_csv(source)
    result = normalize_rows(raw, schema)
    logger.info(
        "Loaded %d campaign rows (%d dropped, %d campaigns)",
        result.row_count,
        result.dropped_rows,
        len(result.campaigns),
    )
    return result


def empty_campaign_frame() -> pd.DataFrame:
    frame = pd.DataFrame({column: pd.Series(dtype="float64") for column in CANONICAL_COLUMNS})
    frame["date"] = pd.Series(dtype="datetime64[ns]")
    frame["campaign_name"] = pd.Series(dtype=object)
    for column in COUNT_COLUMNS:
        frame[column] = pd.Series(dtype="int64")
    return frame[CANONICAL_COLUMNS]
