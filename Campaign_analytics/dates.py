"""Date parsing and calendar gap filling for daily campaign series."""

from __future__ import annotations

import logging
import math
import re
import warnings
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Union

import pandas as pd
from pandas.api.types import is_integer_dtype, is_numeric_dtype

logger = logging.getLogger(__name__)

_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_DAY_FIRST_DATE = re.compile(r"^(\d{1,2})[-.](\d{1,2})[-.](\d{4})$")
_EMPTY_TOKENS = {"", "nan", "nat", "none", "null"}

DateLike = Union[str, date, datetime, pd.Timestamp, float, None]


def _build_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date_string(value: DateLike) -> Optional[date]:
    """Parse a CSV date cell into a calendar date, or ``None`` when it cannot be read.

    Accepted forms, in order: ``M/D/YYYY`` (two-digit years are read as 20YY),
    ISO ``YYYY-MM-DD`` with an optional time part, day-first ``D-M-YYYY`` or
    ``D.M.YYYY``, and finally whatever pandas can infer.
    """

    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, float) and math.isnan(value):
        return None

    text = str(value).strip()
    if text.lower() in _EMPTY_TOKENS:
        return None

    match = _US_DATE.match(text)
    if match:
        month, day, year = (int(part) for part in match.groups())
        if len(match.group(3)) == 2:
            year += 2000
        return _build_date(year, month, day)

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _build_date(year, month, day)

    match = _DAY_FIRST_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _build_date(year, month, day)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, OverflowError, TypeError):
            return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def parse_date_series(values: pd.Series) -> pd.Series:
    """Vectorised :func:`parse_date_string` returning ``datetime64`` with ``NaT`` for failures."""

    parsed = values.map(parse_date_string)
    return pd.to_datetime(parsed, errors="coerce")


def normalize_date(value: DateLike) -> str:
    """Return ``YYYY-MM-DD`` for any parseable value, else an empty string."""

    parsed = parse_date_string(value)
    return parsed.isoformat() if parsed else ""


def format_date_display(value: DateLike) -> str:
    """Return ``M/D/YYYY`` without zero padding, as upstream exports show dates."""

    parsed = parse_date_string(value)
    if parsed is None:
        return ""
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def complete_date_range(
    values: Iterable[DateLike],
    start: DateLike | None = None,
    end: DateLike | None = None,
) -> List[date]:
    """Every calendar day from the first to the last date, inclusive.

    ``start``/``end`` override the bounds found in ``values``.
    """

    parsed = [day for day in (parse_date_string(value) for value in values) if day is not None]
    lower = parse_date_string(start) if start is not None else (min(parsed) if parsed else None)
    upper = parse_date_string(end) if end is not None else (max(parsed) if parsed else None)
    if lower is None or upper is None or upper < lower:
        return []
    span = (upper - lower).days
    return [lower + timedelta(days=offset) for offset in range(span + 1)]


def fill_missing_dates(
    series: pd.DataFrame,
    start: DateLike | None = None,
    end: DateLike | None = None,
    *,
    date_column: str = "date",
) -> pd.DataFrame:
    """Expand a date-keyed frame into one row per calendar day.

    Missing days get ``0`` in every numeric column and ``""`` elsewhere. With an
    explicit ``start``/``end`` the output covers exactly that range; otherwise it
    spans the first to last date present. A frame without any dated row yields an
    empty frame with the same columns.
    """

    empty = series.iloc[0:0].copy()
    if series.empty or date_column not in series.columns:
        return empty

    frame = series.copy()
    frame[date_column] = pd.to_datetime(frame[date_column], errors="coerce").dt.normalize()
    frame = frame.dropna(subset=[date_column])
    if frame.empty:
        return empty
    if frame[date_column].duplicated().any():
        raise ValueError("fill_missing_dates expects at most one row per date; aggregate by date first")

    days = complete_date_range(frame[date_column], start=start, end=end)
    if not days:
        return empty
    index = pd.DatetimeIndex(pd.to_datetime(days), name=date_column)

    filled = frame.set_index(date_column).reindex(index)
    for column in filled.columns:
        original = frame[column].dtype
        if is_numeric_dtype(original) and not pd.api.types.is_bool_dtype(original):
            filled[column] = filled[column].fillna(0)
            if is_integer_dtype(original):
                filled[column] = filled[column].astype(original)
        else:
            filled[column] = filled[column].fillna("")

    inserted = len(index) - int(index.isin(frame[date_column]).sum())
    if inserted:
        logger.debug("Filled %d missing days between %s and %s", inserted, days[0], days[-1])
    return filled.reset_index()[list(series.columns)]
