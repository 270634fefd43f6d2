"""Tests for the CatalogService query interface."""

import asyncio

import httpx
import pytest

from conftest import ARCHIVE, PLATFORM_PAGE, ROOT_PAGE
from models.catalog_entry import CatalogEntry, CoverCandidate
from services.catalog_service import BUILTIN_PLATFORMS, CatalogService, builtin_platforms, search
from services.config import Settings
from services.cover_resolver import CoverResolver, CoverSource
from services.exceptions import InvalidPlatformError

GAME_BOY = "Nintendo - Game Boy"


class Archive:
    """Fake archive server counting hits per path; responses can be scripted."""

    def __init__(self):
        self.hits = {}
        self.statuses = []
        self.pages = {}

    def __call__(self, request):
        path = request.url.path
        self.hits[path] = self.hits.get(path, 0) + 1
        if self.statuses:
            return httpx.Response(self.statuses.pop(0))
        if path in self.pages:
            return httpx.Response(200, text=self.pages[path])
        if path == "/files/No-Intro/":
            return httpx.Response(200, text=ROOT_PAGE)
        return httpx.Response(200, text=PLATFORM_PAGE)

    def count(self, platform=None):
        path = "/files/No-Intro/" if platform is None else f"/files/No-Intro/{platform}/"
        return self.hits.get(path, 0)


class StaticSource(CoverSource):
    def __init__(self):
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        return [CoverCandidate("Tetris", "https://img.test/tetris.jpg")]


def _settings(**overrides):
    return Settings(archive_base_url=ARCHIVE, **overrides)


def _run(archive, clock, scenario, **settings):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(archive)) as client:
            service = CatalogService(_settings(**settings), client=client, clock=clock)
            return await scenario(service)

    return asyncio.run(main())


def test_list_titles_is_cached_within_ttl(clock):
    archive = Archive()

    async def scenario(service):
        first = await service.list_titles(GAME_BOY)
        clock.advance(59)
        second = await service.list_titles(GAME_BOY)
        return first, second

    first, second = _run(archive, clock, scenario, title_list_ttl_minutes=60)

    assert archive.count(GAME_BOY) == 1
    assert first == second
    assert len(first) == 4


def test_list_titles_refetches_after_ttl(clock):
    archive = Archive()

    async def scenario(service):
        await service.list_titles(GAME_BOY)
        clock.advance(5)
        await service.list_titles(GAME_BOY)

    _run(archive, clock, scenario, title_list_ttl_minutes=5)
    assert archive.count(GAME_BOY) == 2


def test_platform_and_title_ttls_are_independent(clock):
    archive = Archive()

    async def scenario(service):
        await service.list_platforms()
        await service.list_titles(GAME_BOY)
        clock.advance(30)
        await service.list_platforms()
        await service.list_titles(GAME_BOY)

    _run(archive, clock, scenario, platform_list_ttl_minutes=60, title_list_ttl_minutes=30)

    assert archive.count() == 1
    assert archive.count(GAME_BOY) == 2


def test_list_platforms_returns_crawled_directories(clock):
    platforms = _run(Archive(), clock, lambda service: service.list_platforms())
    assert [p.display_name for p in platforms] == ["Game Boy", "PlayStation Portable", "MAME"]


def test_clear_catalog_cache_forces_refetch(clock):
    archive = Archive()

    async def scenario(service):
        await service.list_platforms()
        await service.list_titles(GAME_BOY)
        service.clear_catalog_cache()
        await service.list_platforms()
        await service.list_titles(GAME_BOY)

    _run(archive, clock, scenario)

    assert archive.count() == 2
    assert archive.count(GAME_BOY) == 2


def test_failed_fetch_returns_empty_and_is_not_cached(clock):
    archive = Archive()
    archive.statuses = [503]

    async def scenario(service):
        failed = await service.list_titles(GAME_BOY)
        recovered = await service.list_titles(GAME_BOY)
        return failed, recovered

    failed, recovered = _run(archive, clock, scenario)

    assert failed == []
    assert len(recovered) == 4
    assert archive.count(GAME_BOY) == 2


def test_empty_listing_is_cached(clock):
    archive = Archive()
    archive.pages["/files/No-Intro/Empty/"] = "<html><body><a href=\"../\">../</a></body></html>"

    async def scenario(service):
        first = await service.list_titles("Empty")
        second = await service.list_titles("Empty")
        return first, second

    assert _run(archive, clock, scenario) == ([], [])
    assert archive.count("Empty") == 1


def test_empty_root_listing_is_cached(clock):
    archive = Archive()
    archive.pages["/files/No-Intro/"] = "<html><body></body></html>"

    async def scenario(service):
        await service.list_platforms()
        return await service.list_platforms()

    assert _run(archive, clock, scenario) == []
    assert archive.count() == 1


def test_concurrent_callers_get_the_same_titles(clock):
    async def scenario(service):
        return await asyncio.gather(*(service.list_titles(GAME_BOY) for _ in range(5)))

    results = _run(Archive(), clock, scenario)
    assert all(result == results[0] for result in results)


def test_platform_name_is_requested_verbatim(clock):
    archive = Archive()
    name = GAME_BOY + " "

    entries = _run(archive, clock, lambda service: service.list_titles(name))

    assert archive.count(name) == 1
    assert archive.count(GAME_BOY) == 0
    assert entries[0].platform_id == name


@pytest.mark.parametrize("name", ["", "   ", ".."])
def test_invalid_platform_name_raises(clock, name):
    with pytest.raises(InvalidPlatformError):
        _run(Archive(), clock, lambda service: service.list_titles(name))


def test_get_platform_falls_back_to_builtin_list(clock):
    async def scenario(service):
        live = await service.get_platform(GAME_BOY)
        builtin = await service.get_platform("Sega - Saturn")
        missing = await service.get_platform("Nope")
        return live, builtin, missing

    live, builtin, missing = _run(Archive(), clock, scenario)

    assert live.id == "nintendo___game_boy"
    assert builtin.id == "sega___saturn"
    assert missing is None


def test_builtin_ids_match_crawled_ids(clock):
    live = _run(Archive(), clock, lambda service: service.list_platforms())
    builtin = {p.name: p.id for p in BUILTIN_PLATFORMS}

    for platform in live:
        if platform.name in builtin:
            assert builtin[platform.name] == platform.id
    assert builtin[GAME_BOY] == "nintendo___game_boy"


def test_cover_queries_go_through_the_injected_resolver(clock):
    source = StaticSource()
    resolver = CoverResolver(source, clock=clock)
    service = CatalogService(_settings(), cover_resolver=resolver, clock=clock)

    async def scenario():
        first = await service.resolve_cover("Tetris (World)")
        await service.resolve_cover("Tetris (World)")
        service.clear_cover_cache()
        await service.resolve_cover("Tetris (World)")
        return first

    assert asyncio.run(scenario()) == "https://img.test/tetris.jpg"
    assert source.queries == ["tetris", "tetris"]


def test_search_filters_title_region_and_language():
    entries = [
        CatalogEntry("a", "Tetris", "Tetris (World).zip", "World", ("English",), GAME_BOY),
        CatalogEntry("b", "Zelda", "Zelda (Japan).zip", "Japan", ("Japanese",), GAME_BOY),
        CatalogEntry("c", "Wario", "Wario (Europe) (En,Fr).zip", "Europe", ("English", "French"), GAME_BOY),
    ]

    assert search(entries, "  ") == entries
    assert [e.id for e in search(entries, "TETRIS")] == ["a"]
    assert [e.id for e in search(entries, "japan")] == ["b"]
    assert [e.id for e in search(entries, "french")] == ["c"]


def test_builtin_platforms_is_a_copy():
    platforms = builtin_platforms()
    platforms.clear()
    assert len(BUILTIN_PLATFORMS) == 20
