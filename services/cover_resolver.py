"""
services/cover_resolver.py – Attach cover artwork to a catalogue title.

Resolution order
----------------
1. Cached URL for the exact (unnormalised) title, if younger than the TTL.
2. Primary search source: rank up to N results by name similarity and take
   the best one scoring at least the threshold.
3. Secondary search source, ranked the same way.
4. A deterministic placeholder image embedding the (truncated) title.

Search sources sit behind the narrow CoverSource interface (query → list of
CoverCandidate) so providers can be swapped or faked in tests.  Their
transport failures surface as CoverLookupError and are absorbed here.
"""

import abc
import asyncio
import logging
import re
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote

import httpx

from models.catalog_entry import CoverCandidate
from services.catalog_cache import Clock, TimedCache, epoch_millis
from services.config import (
    PLACEHOLDER_MAX_TITLE,
    PLACEHOLDER_URL_TEMPLATE,
    Settings,
)
from services.exceptions import CoverLookupError
from services.similarity import similarity

log = logging.getLogger(__name__)

_BRACKETED_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Strip bracketed segments and punctuation, collapse spaces, lower-case."""
    cleaned = _BRACKETED_RE.sub("", title)
    cleaned = _PUNCTUATION_RE.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip().lower()


def placeholder_url(title: str) -> str:
    """Placeholder image URL showing *title*, truncated to a fixed length."""
    short = title if len(title) <= PLACEHOLDER_MAX_TITLE else title[:PLACEHOLDER_MAX_TITLE] + "..."
    return PLACEHOLDER_URL_TEMPLATE.format(text=quote(short, safe="!~*'()"))


def best_match(
    query: str,
    candidates: Sequence[CoverCandidate],
    *,
    threshold: float,
    limit: Optional[int] = None,
) -> Optional[CoverCandidate]:
    """
    Pick the candidate whose normalised name is most similar to *query*.

    *query* must already be normalised.  Ties keep the earlier candidate;
    nothing below *threshold* is ever returned.
    """
    best: Optional[CoverCandidate] = None
    best_score = 0.0
    for candidate in list(candidates)[:limit]:
        score = similarity(query, normalize_title(candidate.name))
        if score > best_score and score >= threshold:
            best, best_score = candidate, score
    return best


# ── Search sources ───────────────────────────────────────────────────────────


class CoverSource(abc.ABC):
    """A provider turning a normalised title into candidate covers."""

    name: str = "source"

    @abc.abstractmethod
    async def search(self, query: str) -> List[CoverCandidate]:
        """
        Return candidates for *query*, best-ranked first.

        Raises
        ------
        CoverLookupError on any transport or schema failure.
        """


class RawgCoverSource(CoverSource):
    """RAWG-style ``GET ?search=...`` endpoint returning ``{"results": [...]}``."""

    name = "rawg"

    def __init__(
        self,
        url: str,
        *,
        page_size: int = 5,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._page_size = page_size
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    async def search(self, query: str) -> List[CoverCandidate]:
        params: Dict[str, object] = {"search": query, "page_size": self._page_size}
        if self._api_key:
            params["key"] = self._api_key

        payload = await _request_json(
            "GET",
            self._url,
            client=self._client,
            timeout=self._timeout,
            params=params,
            headers={"Accept": "application/json"},
        )
        results = payload.get("results") if isinstance(payload, dict) else None
        if results is None:
            return []
        if not isinstance(results, list):
            raise CoverLookupError(f"Unexpected 'results' payload from {self._url}")

        candidates: List[CoverCandidate] = []
        for item in results[: self._page_size]:
            if not isinstance(item, dict):
                continue
            candidates.append(
                CoverCandidate(
                    name=str(item.get("name") or ""),
                    image_url=_image_url(item.get("background_image"), self._url),
                )
            )
        return candidates


class IgdbCoverSource(CoverSource):
    """
    IGDB games endpoint (apicalypse query language).

    Requires a Twitch client id and app access token; without them the source
    is disabled and returns no candidates.
    """

    name = "igdb"

    def __init__(
        self,
        url: str,
        *,
        client_id: Optional[str],
        access_token: Optional[str],
        limit: int = 5,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._client_id = client_id
        self._access_token = access_token
        self._limit = limit
        self._timeout = timeout
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self._client_id and self._access_token)

    async def search(self, query: str) -> List[CoverCandidate]:
        if not self.enabled:
            return []

        term = query.replace('"', " ")
        body = f'search "{term}"; fields name,cover.url; limit {self._limit};'
        payload = await _request_json(
            "POST",
            self._url,
            client=self._client,
            timeout=self._timeout,
            content=body,
            headers={
                "Client-ID": self._client_id,
                "Authorization": f"Bearer {self._access_token}",
                "Content-Type": "text/plain",
                "Accept": "application/json",
            },
        )
        if not isinstance(payload, list):
            raise CoverLookupError(f"Unexpected payload from {self._url}")

        candidates: List[CoverCandidate] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            cover = item.get("cover") or {}
            if not isinstance(cover, dict):
                raise CoverLookupError(f"Unexpected cover object from {self._url}: {cover!r}")
            url = _image_url(cover.get("url"), self._url)
            candidates.append(
                CoverCandidate(name=str(item.get("name") or ""), image_url=_igdb_image(url))
            )
        return candidates


# ── Resolver ─────────────────────────────────────────────────────────────────


class CoverResolver:
    """
    Resolves titles to image URLs and caches the winners.

    Parameters
    ----------
    primary   : First search source consulted.
    secondary : Fallback source, or None.
    settings  : Threshold, page size, TTL and prefetch concurrency.
    clock     : Epoch-millisecond clock for the cache.
    """

    def __init__(
        self,
        primary: CoverSource,
        secondary: Optional[CoverSource] = None,
        *,
        settings: Optional[Settings] = None,
        clock: Clock = epoch_millis,
    ) -> None:
        self._settings = settings or Settings()
        self._sources = [s for s in (primary, secondary) if s is not None]
        self._cache: TimedCache[str] = TimedCache(
            self._settings.cover_ttl_ms, clock=clock, name="cover cache"
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
        clock: Clock = epoch_millis,
    ) -> "CoverResolver":
        primary = RawgCoverSource(
            settings.cover_search_url,
            page_size=settings.cover_search_page_size,
            api_key=settings.cover_search_api_key,
            timeout=settings.http_timeout,
            client=client,
        )
        secondary = IgdbCoverSource(
            settings.igdb_games_url,
            client_id=settings.igdb_client_id,
            access_token=settings.igdb_access_token,
            limit=settings.cover_search_page_size,
            timeout=settings.http_timeout,
            client=client,
        )
        return cls(primary, secondary, settings=settings, clock=clock)

    async def resolve(self, title: str) -> str:
        """Return an image URL for *title*; never raises for lookup failures."""
        key = f"cover_{title}"
        cached, fresh = self._cache.get(key)
        if cached is not None and fresh:
            return cached

        query = normalize_title(title)
        if query:
            for source in self._sources:
                url = await self._lookup(source, query)
                if url:
                    self._cache.put(key, url)
                    return url

        log.debug("No cover match for '%s'; using placeholder.", title)
        return placeholder_url(title)

    async def prefetch(
        self, titles: Iterable[str], concurrency: Optional[int] = None
    ) -> Dict[str, str]:
        """
        Resolve *titles* with at most *concurrency* lookups in flight.

        A new lookup starts as soon as one settles, so the cap stays saturated
        while titles remain.  Returns title → URL.
        """
        limit = max(1, concurrency or self._settings.prefetch_concurrency)
        queue = deque(titles)
        in_flight: Dict[asyncio.Future, str] = {}
        results: Dict[str, str] = {}

        try:
            while queue or in_flight:
                while queue and len(in_flight) < limit:
                    title = queue.popleft()
                    in_flight[asyncio.ensure_future(self.resolve(title))] = title

                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    title = in_flight.pop(task)
                    results[title] = _settled(task, title)
        finally:
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)
        return results

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_size(self) -> int:
        return len(self._cache)

    def export_cache(self) -> Dict[str, str]:
        """Title-key → URL mapping of every cached cover (for debugging)."""
        return self._cache.snapshot()

    async def _lookup(self, source: CoverSource, query: str) -> Optional[str]:
        try:
            candidates = await source.search(query)
        except CoverLookupError as exc:
            log.warning("Cover source '%s' failed for '%s': %s", source.name, query, exc)
            return None

        winner = best_match(
            query,
            candidates,
            threshold=self._settings.min_similarity,
            limit=self._settings.cover_search_page_size,
        )
        if winner is None or not winner.image_url:
            return None
        return winner.image_url


# ── Private helpers ───────────────────────────────────────────────────────────


async def _request_json(
    method: str,
    url: str,
    *,
    client: Optional[httpx.AsyncClient],
    timeout: float,
    **kwargs,
):
    """Send one request and decode the JSON body, raising CoverLookupError."""
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own:
                response = await asyncio.wait_for(own.request(method, url, **kwargs), timeout)
        else:
            response = await asyncio.wait_for(
                client.request(method, url, timeout=timeout, **kwargs), timeout
            )
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        raise CoverLookupError(
            f"Cover search returned HTTP {exc.response.status_code}."
        ) from exc
    except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
        raise CoverLookupError(f"Cover search timed out after {timeout:g}s") from exc
    except httpx.HTTPError as exc:
        raise CoverLookupError(f"Network error during cover search: {exc}") from exc
    except ValueError as exc:
        raise CoverLookupError(f"Cover search returned invalid JSON: {exc}") from exc


def _image_url(value: object, source_url: str) -> Optional[str]:
    """Accept a non-empty string image URL; reject any other shape."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise CoverLookupError(f"Unexpected image URL from {source_url}: {value!r}")
    return value


def _settled(task: "asyncio.Future[str]", title: str) -> str:
    exc = task.exception()
    if exc is None:
        return task.result()
    log.error("Cover lookup for '%s' failed unexpectedly.", title, exc_info=exc)
    return placeholder_url(title)


def _igdb_image(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    url = url.replace("t_thumb", "t_cover_big")
    if url.startswith("//"):
        url = "https:" + url
    return url
