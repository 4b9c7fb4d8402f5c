"""Campaign naming conventions: agency and advertiser extraction plus row filters.

Campaign order names follow the trafficking convention
``<IO number>: <agency abbreviation>: <advertiser>-<flight suffix>``, with a few
legacy variants (``Awaiting IO:`` prefixes, split IO numbers such as
``2001567/2001103``, and Wunderworx names without an agency segment).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Set

import pandas as pd

from Campaign_analytics.config import FilterOptions

AGENCY_MAPPING: Dict[str, str] = {
    "2RS": "Two Rivers",
    "6D": "6 Degrees Media",
    "BLO": "Be Local One",
    "FLD": "Fieldtest",
    "HD": "Highday",
    "HG": "Happy Greens",
    "HRB": "Herb.co",
    "LP": "Lettuce Print",
    "MJ": "MediaJel",
    "NLMC": "NLMC",
    "NP": "Noble People",
    "PRP": "Propaganda Creative",
    "SM": "SM Services",
    "TF": "Tact Firm",
    "TRN": "Terrayn",
    "W&T": "Water & Trees",
    "WWX": "Wunderworx",
}

_PRP_SPECIAL_CASES = ("2001943:Partner-PRP", "2001943: PRP-Pend Oreille")
_AWAITING_IO_AGENCY = re.compile(r"^Awaiting IO:\s*([^:]+):")
_WWX_PREFIX = re.compile(r"^\d+:?\s*WWX-")
_SPLIT_IO_AGENCY = re.compile(r"^\d+\s*/\s*\d+:\s*([^:]+):")
_STANDARD_AGENCY = re.compile(r"^\d+:\s*([^:]+):")
_LEADING_SEGMENT = re.compile(r"^([^:]+):")

_AWAITING_IO_ADVERTISER = re.compile(r"^Awaiting IO:\s*[^:]+:\s*([^-]+)")
_STANDARD_ADVERTISER = re.compile(r"^\d+(?:/\d+)?:\s*[^:]+:\s*([^-]+)")
_AGENCY_PREFIXES = "SM|2RS|6D|BLO|FLD|HD|HG|HRB|LP|MJ|NLMC|NP|PRP|TF|TRN|W&T|WWX"
_PREFIXED_ADVERTISER = re.compile(rf"({_AGENCY_PREFIXES}):\s+(.*?)(?=-)", re.IGNORECASE)
_PREFIX_ONLY = re.compile(rf"^({_AGENCY_PREFIXES}):")

_TEST_MARKERS = ("test", "demo", "draft")


@dataclass(slots=True, frozen=True)
class AgencyInfo:
    agency: str = ""
    abbreviation: str = ""


def _from_abbreviation(abbreviation: str) -> AgencyInfo:
    abbreviation = abbreviation.strip()
    return AgencyInfo(agency=AGENCY_MAPPING.get(abbreviation, abbreviation), abbreviation=abbreviation)


def extract_agency_info(campaign_name: str) -> AgencyInfo:
    """Return the agency behind a campaign order name, or empty fields when unknown."""

    if not campaign_name:
        return AgencyInfo()

    if any(case in campaign_name for case in _PRP_SPECIAL_CASES):
        return AgencyInfo(agency="Propaganda Creative", abbreviation="PRP")

    if campaign_name.startswith("Awaiting IO:"):
        match = _AWAITING_IO_AGENCY.match(campaign_name)
        if match:
            return _from_abbreviation(match.group(1))

    if _WWX_PREFIX.match(campaign_name) or "-WWX-" in campaign_name:
        return AgencyInfo(agency="Wunderworx", abbreviation="WWX")

    for pattern in (_SPLIT_IO_AGENCY, _STANDARD_AGENCY, _LEADING_SEGMENT):
        match = pattern.match(campaign_name)
        if match and match.group(1).strip():
            return _from_abbreviation(match.group(1))

    return AgencyInfo()


def extract_advertiser_name(campaign_name: str) -> str:
    """Return the advertiser segment of a campaign order name, or ``""``."""

    if not campaign_name:
        return ""

    if "Sol Flower" in campaign_name:
        return "Sol Flower"

    if campaign_name.startswith("Awaiting IO:"):
        match = _AWAITING_IO_ADVERTISER.match(campaign_name)
        if match:
            return match.group(1).strip()

    match = _STANDARD_ADVERTISER.match(campaign_name)
    if match:
        return match.group(1).strip()

    match = _PREFIXED_ADVERTISER.search(campaign_name)
    if match and match.group(2).strip():
        return match.group(2).strip()

    if _PREFIX_ONLY.match(campaign_name) and "-" in campaign_name:
        first_part = campaign_name.split("-", 1)[0].strip()
        _, _, advertiser = first_part.partition(":")
        return advertiser.strip()

    return ""


def is_test_campaign(campaign_name: str) -> bool:
    if not campaign_name:
        return False
    lowered = campaign_name.lower()
    return any(marker in lowered for marker in _TEST_MARKERS)


def add_campaign_dimensions(frame: pd.DataFrame) -> pd.DataFrame:
    """Attach ``advertiser``, ``agency`` and ``agency_abbreviation`` columns."""

    result = frame.copy()
    names = result["campaign_name"].astype(str)
    unique_names = names.unique()
    agencies = {name: extract_agency_info(name) for name in unique_names}
    advertisers = {name: extract_advertiser_name(name) for name in unique_names}
    result["advertiser"] = names.map(advertisers)
    result["agency"] = names.map(lambda name: agencies[name].agency)
    result["agency_abbreviation"] = names.map(lambda name: agencies[name].abbreviation)
    return result


def _campaign_mask(names: pd.Series, options: FilterOptions) -> pd.Series:
    mask = pd.Series(True, index=names.index)
    if options.campaigns:
        mask &= names.isin(options.campaigns)
    if options.advertisers:
        mask &= names.map(extract_advertiser_name).isin(options.advertisers)
    if options.agencies:
        agency_info = names.map(extract_agency_info)
        wanted = set(options.agencies)
        mask &= agency_info.map(lambda info: info.agency in wanted or info.abbreviation in wanted)
    if options.exclude_test_campaigns:
        mask &= ~names.map(is_test_campaign)
    return mask.astype(bool)


def selected_campaigns(names: Iterable[str], options: FilterOptions | None) -> Set[str]:
    """Names among ``names`` that pass the campaign, advertiser, agency and test filters."""

    unique = pd.Series(sorted({str(name) for name in names}), dtype=object)
    if options is None or unique.empty:
        return set(unique)
    return set(unique.loc[_campaign_mask(unique, options)])


def filter_rows(frame: pd.DataFrame, options: FilterOptions | None) -> pd.DataFrame:
    """Apply the global dashboard filters; an empty selection keeps everything."""

    if options is None or options.is_empty() or frame.empty:
        return frame

    mask = _campaign_mask(frame["campaign_name"].astype(str), options)

    if options.start_date or options.end_date:
        dates = pd.to_datetime(frame["date"], errors="coerce")
        if options.start_date:
            mask &= dates >= pd.Timestamp(options.start_date)
        if options.end_date:
            mask &= dates <= pd.Timestamp(options.end_date)

    return frame.loc[mask.astype(bool)]
