"""Exception hierarchy shared by the campaign analytics package."""

from __future__ import annotations

from typing import Iterable


class CampaignAnalyticsError(Exception):
    """Base class for errors raised by this package."""


class CsvImportError(CampaignAnalyticsError, ValueError):
    """Raised when an uploaded CSV cannot be imported as a whole."""

    def __init__(self, message: str, missing_columns: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing_columns = list(missing_columns)


class PacingError(CampaignAnalyticsError, ValueError):
    """Raised when contract terms are incomplete or inconsistent."""


class BackendError(CampaignAnalyticsError, RuntimeError):
    """Raised when a write against the hosted backend fails."""
