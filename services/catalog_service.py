"""
services/catalog_service.py – Query interface consumed by the UI layer.

CatalogService owns both caches for its lifetime: the catalogue cache
(platform list + one title list per platform) and the cover resolver's cache.
Build a fresh instance per test instead of sharing one globally.

Every public coroutine is idempotent and safe to run concurrently.  Transport
failures never escape: an unreachable archive yields an empty list that is
not cached, so a later call fetches again.  A listing that loads but holds
nothing is cached like any other.
"""

import logging
from typing import List, Optional

import httpx

from models.catalog_entry import CatalogEntry, Platform
from services import directory_scraper
from services.catalog_cache import Clock, TimedCache, epoch_millis
from services.config import Settings
from services.cover_resolver import CoverResolver
from services.exceptions import ArchiveFetchError, InvalidPlatformError
from services.filename_parser import DEFAULT_RULES, ParserRules

log = logging.getLogger(__name__)

PLATFORMS_KEY: str = "consoles"


def _builtin(name: str, display_name: str) -> Platform:
    return Platform(directory_scraper.slugify(name), name, display_name)


# Curated No-Intro platforms, usable before (or without) a live crawl.  Ids
# match the ones a crawl assigns to the same directory.
BUILTIN_PLATFORMS: List[Platform] = [
    _builtin("Nintendo - Game Boy Advance", "Game Boy Advance"),
    _builtin("Nintendo - Game Boy Color", "Game Boy Color"),
    _builtin("Nintendo - Game Boy", "Game Boy"),
    _builtin("Nintendo - Nintendo 64", "Nintendo 64"),
    _builtin("Nintendo - Super Nintendo Entertainment System", "SNES"),
    _builtin("Nintendo - Nintendo Entertainment System", "NES"),
    _builtin("Nintendo - Nintendo 3DS", "Nintendo 3DS"),
    _builtin("Nintendo - Nintendo DS", "Nintendo DS"),
    _builtin("Nintendo - Nintendo Switch", "Nintendo Switch"),
    _builtin("Sony - PlayStation", "PlayStation 1"),
    _builtin("Sony - PlayStation 2", "PlayStation 2"),
    _builtin("Sony - PlayStation Portable", "PlayStation Portable"),
    _builtin("Sega - Mega Drive / Genesis", "Mega Drive / Genesis"),
    _builtin("Sega - Dreamcast", "Dreamcast"),
    _builtin("Sega - Saturn", "Saturn"),
    _builtin("Atari - Atari 2600", "Atari 2600"),
    _builtin("Atari - Atari 7800 (BIN)", "Atari 7800"),
    _builtin("Commodore - Commodore 64", "Commodore 64"),
    _builtin("Coleco - ColecoVision", "ColecoVision"),
    _builtin("MAME", "Arcade (MAME)"),
]


def builtin_platforms() -> List[Platform]:
    return list(BUILTIN_PLATFORMS)


def search(entries: List[CatalogEntry], query: str) -> List[CatalogEntry]:
    """
    Case-insensitive in-memory filter over title, region and languages.

    Returns all entries when *query* is empty/whitespace.
    """
    q = query.strip().lower()
    if not q:
        return entries
    return [
        e
        for e in entries
        if q in e.title.lower()
        or q in e.region.lower()
        or any(q in lang.lower() for lang in e.languages)
    ]


class CatalogService:
    """
    Orchestrates scraping, parsing and caching of the archive catalogue.

    Parameters
    ----------
    settings       : Configuration snapshot; defaults to Settings().
    client         : Shared httpx.AsyncClient for archive and cover requests.
                     When omitted each request opens its own client.
    cover_resolver : Injected resolver; built from *settings* when omitted.
    rules          : Filename parsing tables.
    clock          : Epoch-millisecond clock shared by both caches.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        cover_resolver: Optional[CoverResolver] = None,
        rules: ParserRules = DEFAULT_RULES,
        clock: Clock = epoch_millis,
    ) -> None:
        self._settings = settings or Settings()
        self._client = client
        self._rules = rules
        self._platform_cache: TimedCache[List[Platform]] = TimedCache(
            self._settings.platform_list_ttl_ms, clock=clock, name="platform cache"
        )
        self._title_cache: TimedCache[List[CatalogEntry]] = TimedCache(
            self._settings.title_list_ttl_ms, clock=clock, name="title cache"
        )
        self._covers = cover_resolver or CoverResolver.from_settings(
            self._settings, client=client, clock=clock
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def covers(self) -> CoverResolver:
        return self._covers

    # ── Catalogue queries ─────────────────────────────────────────────────────

    async def list_platforms(self) -> List[Platform]:
        """Platforms found at the archive root (cached)."""
        cached, fresh = self._platform_cache.get(PLATFORMS_KEY)
        if cached is not None and fresh:
            return list(cached)

        try:
            platforms = await directory_scraper.scrape_platforms(
                client=self._client,
                base_url=self._settings.archive_base_url,
                timeout=self._settings.http_timeout,
            )
        except ArchiveFetchError as exc:
            log.warning("Platform listing unavailable; nothing cached: %s", exc)
            return []
        self._platform_cache.put(PLATFORMS_KEY, platforms)
        return list(platforms)

    async def list_titles(self, platform_name: str) -> List[CatalogEntry]:
        """
        Catalogue entries for one platform directory (cached per platform).

        Raises
        ------
        InvalidPlatformError
            When *platform_name* is empty or a relative path component.
        """
        name = _validate_platform_name(platform_name)
        key = f"games_{name}"
        cached, fresh = self._title_cache.get(key)
        if cached is not None and fresh:
            return list(cached)

        try:
            entries = await directory_scraper.scrape_titles(
                name,
                client=self._client,
                base_url=self._settings.archive_base_url,
                timeout=self._settings.http_timeout,
                rules=self._rules,
            )
        except ArchiveFetchError as exc:
            log.warning("Title listing for '%s' unavailable; nothing cached: %s", name, exc)
            return []
        self._title_cache.put(key, entries)
        return list(entries)

    async def search_titles(self, platform_name: str, query: str) -> List[CatalogEntry]:
        return search(await self.list_titles(platform_name), query)

    async def get_platform(self, name: str) -> Optional[Platform]:
        """Look *name* up in the live list, then in the built-in one."""
        for platform in await self.list_platforms():
            if platform.name == name:
                return platform
        for platform in BUILTIN_PLATFORMS:
            if platform.name == name:
                return platform
        return None

    # ── Covers ────────────────────────────────────────────────────────────────

    async def resolve_cover(self, title: str) -> str:
        return await self._covers.resolve(title)

    async def prefetch_covers(self, titles: List[str], concurrency: Optional[int] = None) -> dict:
        return await self._covers.prefetch(titles, concurrency)

    # ── Administration ────────────────────────────────────────────────────────

    def clear_catalog_cache(self) -> None:
        self._platform_cache.clear()
        self._title_cache.clear()

    def clear_cover_cache(self) -> None:
        self._covers.clear_cache()


def _validate_platform_name(platform_name: str) -> str:
    if not isinstance(platform_name, str):
        raise InvalidPlatformError(f"Platform name must be a string, got {type(platform_name).__name__}")
    stripped = platform_name.strip()
    if not stripped or stripped in (".", ".."):
        raise InvalidPlatformError(f"Invalid platform name: {platform_name!r}")
    return platform_name
