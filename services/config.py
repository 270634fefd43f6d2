"""
services/config.py – Runtime configuration for the catalogue services.

Every value has a module-level default which can be overridden through a
ROMCAT_* environment variable.  Settings.from_env() snapshots them into an
immutable object that is injected into CatalogService and CoverResolver, so
tests can build their own without touching the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional

# ── Configuration ────────────────────────────────────────────────────────────

# Root of the No-Intro collection; every platform is one sub-directory.
ARCHIVE_BASE_URL: str = "https://myrient.erista.me/files/No-Intro"

# HTTP timeout (seconds) for listing pages and cover searches.
HTTP_TIMEOUT: float = 30.0

# Cache lifetimes (minutes).  The platform list and the per-platform title
# lists are cached independently.
PLATFORM_LIST_TTL_MINUTES: float = 60.0
TITLE_LIST_TTL_MINUTES: float = 60.0
COVER_TTL_MINUTES: float = 24 * 60.0

# Primary cover search endpoint (RAWG-compatible JSON schema).
COVER_SEARCH_URL: str = "https://api.rawg.io/api/games"
COVER_SEARCH_PAGE_SIZE: int = 5

# Secondary cover source (IGDB).  Disabled unless both credentials are set.
IGDB_GAMES_URL: str = "https://api.igdb.com/v4/games"

# Minimum similarity a search result needs to be accepted as a match.
MIN_SIMILARITY: float = 0.6

# Covers resolved concurrently during a batch prefetch.
PREFETCH_CONCURRENCY: int = 3

PLACEHOLDER_URL_TEMPLATE: str = "https://via.placeholder.com/300x400/1a1a1a/3b82f6?text={text}"
PLACEHOLDER_MAX_TITLE: int = 20


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(
            f"Environment variable {name} must be a number, got {raw!r}"
        ) from exc


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name, "").strip()
    return raw or default


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of the catalogue configuration."""

    archive_base_url: str = ARCHIVE_BASE_URL
    http_timeout: float = HTTP_TIMEOUT
    platform_list_ttl_minutes: float = PLATFORM_LIST_TTL_MINUTES
    title_list_ttl_minutes: float = TITLE_LIST_TTL_MINUTES
    cover_ttl_minutes: float = COVER_TTL_MINUTES
    cover_search_url: str = COVER_SEARCH_URL
    cover_search_page_size: int = COVER_SEARCH_PAGE_SIZE
    cover_search_api_key: Optional[str] = None
    igdb_games_url: str = IGDB_GAMES_URL
    igdb_client_id: Optional[str] = None
    igdb_access_token: Optional[str] = None
    min_similarity: float = MIN_SIMILARITY
    prefetch_concurrency: int = PREFETCH_CONCURRENCY

    @property
    def platform_list_ttl_ms(self) -> int:
        return int(self.platform_list_ttl_minutes * 60 * 1000)

    @property
    def title_list_ttl_ms(self) -> int:
        return int(self.title_list_ttl_minutes * 60 * 1000)

    @property
    def cover_ttl_ms(self) -> int:
        return int(self.cover_ttl_minutes * 60 * 1000)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ROMCAT_* / IGDB_* environment variables."""
        return cls(
            archive_base_url=_env_str("ROMCAT_ARCHIVE_BASE_URL", ARCHIVE_BASE_URL).rstrip("/"),
            http_timeout=_env_float("ROMCAT_HTTP_TIMEOUT", HTTP_TIMEOUT),
            platform_list_ttl_minutes=_env_float(
                "ROMCAT_PLATFORM_LIST_TTL_MINUTES", PLATFORM_LIST_TTL_MINUTES
            ),
            title_list_ttl_minutes=_env_float(
                "ROMCAT_TITLE_LIST_TTL_MINUTES", TITLE_LIST_TTL_MINUTES
            ),
            cover_ttl_minutes=_env_float("ROMCAT_COVER_TTL_MINUTES", COVER_TTL_MINUTES),
            cover_search_url=_env_str("ROMCAT_COVER_SEARCH_URL", COVER_SEARCH_URL),
            cover_search_page_size=_env_int(
                "ROMCAT_COVER_SEARCH_PAGE_SIZE", COVER_SEARCH_PAGE_SIZE
            ),
            cover_search_api_key=os.environ.get("ROMCAT_COVER_SEARCH_API_KEY") or None,
            igdb_client_id=os.environ.get("IGDB_CLIENT_ID") or None,
            igdb_access_token=os.environ.get("IGDB_ACCESS_TOKEN") or None,
            min_similarity=_env_float("ROMCAT_MIN_SIMILARITY", MIN_SIMILARITY),
            prefetch_concurrency=max(1, _env_int("ROMCAT_PREFETCH_CONCURRENCY", PREFETCH_CONCURRENCY)),
        )
