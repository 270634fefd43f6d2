"""
services/exceptions.py – Structured custom exception hierarchy for the catalogue.

All service-level errors derive from CatalogError so callers can catch broadly
or specifically depending on context.  Transport failures (ArchiveFetchError,
CoverLookupError) are absorbed at the public service boundary; only
InvalidPlatformError ever reaches a caller.
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for all catalogue exceptions."""


class ArchiveFetchError(CatalogError):
    """
    Raised when an archive listing page cannot be fetched.

    Attributes
    ----------
    url         : The listing URL that was requested.
    status_code : HTTP status when the server answered, else None.
    """

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"Could not fetch '{url}': {reason}")


class CoverLookupError(CatalogError):
    """Raised when a cover search source fails or returns an unusable payload."""


class InvalidPlatformError(CatalogError):
    """Raised when a caller passes an empty or malformed platform name."""
