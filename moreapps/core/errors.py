"""Exception hierarchy for moreapps.

Every error raised by the package derives from :class:`MoreAppsError` so that
callers can catch the whole family with a single ``except`` clause.  The
orchestrator recovers from :class:`CatalogError` subclasses locally; the other
errors are surfaced to the caller as-is.
"""

from __future__ import annotations

from typing import Optional


class MoreAppsError(Exception):
    """Base class for all moreapps errors."""

    default_message = "moreapps error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class NotConfigured(MoreAppsError):
    """Raised when a data operation runs before ``configure()``."""

    default_message = "moreapps has not been configured. Call configure() first."


class CatalogError(MoreAppsError):
    """A lookup call failed and produced no results."""

    default_message = "Catalog lookup failed."


class NetworkError(CatalogError):
    """Transport failure or non-success HTTP status from the lookup service."""

    default_message = "Network request to the lookup service failed."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(CatalogError):
    """The lookup response could not be parsed into the expected envelope."""

    default_message = "Lookup response could not be decoded."


class NoData(MoreAppsError):
    """The result set was empty after all fallbacks."""

    default_message = "No app data available."
