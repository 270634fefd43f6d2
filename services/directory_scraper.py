"""
services/directory_scraper.py – Fetch and parse the archive's HTML directory listings.

The archive is a plain web-server index: the root page links one directory per
platform, each platform page links its .zip files.  Both are parsed with
BeautifulSoup by looking at anchor hrefs only, so layout changes around the
links do not matter.

Failure policy
--------------
fetch_platforms() and fetch_titles() never raise for transport problems.  A
network error, timeout or non-2xx status is logged and turned into an empty
list; retrying is left to the caller.  scrape_platforms() and scrape_titles()
let ArchiveFetchError through instead, for callers that must tell an empty
directory from an unreachable one.
"""

import asyncio
import logging
import re
from typing import List, Optional
from urllib.parse import quote, unquote

import httpx
from bs4 import BeautifulSoup

from models.catalog_entry import CatalogEntry, Platform
from services.config import ARCHIVE_BASE_URL, HTTP_TIMEOUT
from services.exceptions import ArchiveFetchError
from services.filename_parser import DEFAULT_RULES, ParserRules, parse_filename

log = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

# Stripped from directory names to build display names (first match, once).
MANUFACTURER_PREFIXES = (
    "Nintendo - ",
    "Sony - ",
    "Sega - ",
    "Atari - ",
    "Commodore - ",
    "Coleco - ",
)

PARENT_HREF: str = "../"
PARENT_LABEL: str = "Parent Directory"

# Same unreserved set as JavaScript's encodeURIComponent.
_URL_SAFE: str = "!~*'()"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)

# ── Public API ───────────────────────────────────────────────────────────────


async def fetch_platforms(
    *,
    client: Optional[httpx.AsyncClient] = None,
    base_url: str = ARCHIVE_BASE_URL,
    timeout: float = HTTP_TIMEOUT,
) -> List[Platform]:
    """
    Crawl the archive root and return one Platform per sub-directory.

    Returns an empty list on any transport failure.
    """
    try:
        return await scrape_platforms(client=client, base_url=base_url, timeout=timeout)
    except ArchiveFetchError as exc:
        log.warning("Platform listing unavailable: %s", exc)
        return []


async def fetch_titles(
    platform_name: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    base_url: str = ARCHIVE_BASE_URL,
    timeout: float = HTTP_TIMEOUT,
    rules: ParserRules = DEFAULT_RULES,
) -> List[CatalogEntry]:
    """
    Fetch one platform directory and parse every archive file it lists.

    Parameters
    ----------
    platform_name : Exact archive directory name, e.g. "Nintendo - Game Boy".
    client        : Optional shared AsyncClient; a private one is opened
                    (and closed) when omitted.
    base_url      : Archive root URL without trailing slash.
    timeout       : Overall bound for the request in seconds.
    rules         : Filename parsing tables.

    Returns
    -------
    List[CatalogEntry]
        One entry per distinct filename, in listing order; empty on failure.
    """
    try:
        return await scrape_titles(
            platform_name, client=client, base_url=base_url, timeout=timeout, rules=rules
        )
    except ArchiveFetchError as exc:
        log.warning("Title listing for '%s' unavailable: %s", platform_name, exc)
        return []


async def scrape_platforms(
    *,
    client: Optional[httpx.AsyncClient] = None,
    base_url: str = ARCHIVE_BASE_URL,
    timeout: float = HTTP_TIMEOUT,
) -> List[Platform]:
    """
    Like fetch_platforms(), but transport failures propagate.

    Raises
    ------
    ArchiveFetchError
        On network error, timeout or non-2xx status.
    """
    url = listing_url(base_url)
    html = await _fetch_html(url, client=client, timeout=timeout)
    platforms = parse_root_listing(html)
    log.info("Found %d platforms at %s", len(platforms), url)
    return platforms


async def scrape_titles(
    platform_name: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    base_url: str = ARCHIVE_BASE_URL,
    timeout: float = HTTP_TIMEOUT,
    rules: ParserRules = DEFAULT_RULES,
) -> List[CatalogEntry]:
    """
    Like fetch_titles(), but transport failures propagate so callers can tell
    an empty directory from an unreachable one.

    Raises
    ------
    ArchiveFetchError
        On network error, timeout or non-2xx status.
    """
    url = listing_url(base_url, platform_name)
    html = await _fetch_html(url, client=client, timeout=timeout)
    entries = parse_platform_listing(html, platform_name, base_url=base_url, rules=rules)
    log.info("Parsed %d titles for '%s'", len(entries), platform_name)
    return entries


def parse_platform_listing(
    html: str,
    platform_name: str,
    *,
    base_url: str = ARCHIVE_BASE_URL,
    rules: ParserRules = DEFAULT_RULES,
) -> List[CatalogEntry]:
    """Turn a platform directory page into catalogue entries."""
    soup = BeautifulSoup(html, "html.parser")
    entries: List[CatalogEntry] = []
    seen: set = set()

    for anchor in soup.find_all("a", href=True):
        href: str = anchor["href"].strip()
        if not rules.has_archive_extension(href):
            continue

        filename = _decode(href.rsplit("/", 1)[-1])
        if not filename or filename in seen:
            continue
        seen.add(filename)

        parsed = parse_filename(filename, rules)
        entries.append(
            CatalogEntry(
                id=entry_id(platform_name, filename),
                title=parsed.title or filename,
                filename=filename,
                region=parsed.region,
                languages=parsed.languages,
                platform_id=platform_name,
                download_url=download_url(platform_name, filename, base_url=base_url),
            )
        )
    return entries


def parse_root_listing(html: str) -> List[Platform]:
    """Turn the archive root page into platforms, skipping the parent link."""
    soup = BeautifulSoup(html, "html.parser")
    platforms: List[Platform] = []
    seen: set = set()

    for anchor in soup.find_all("a", href=True):
        href: str = anchor["href"].strip()
        label = anchor.get_text(strip=True)
        if not href.endswith("/"):
            continue
        if href == PARENT_HREF or label == PARENT_LABEL:
            continue
        # Absolute links (breadcrumbs, site navigation) are not sub-directories.
        if href.startswith("/") or "://" in href or href == "./":
            continue

        name = _decode(href.rstrip("/"))
        if not name or name in seen:
            continue
        seen.add(name)
        platforms.append(make_platform(name))
    return platforms


def make_platform(name: str) -> Platform:
    return Platform(id=slugify(name), name=name, display_name=display_name(name))


def display_name(name: str) -> str:
    """Strip the first matching manufacturer prefix from *name*."""
    for prefix in MANUFACTURER_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def slugify(value: str) -> str:
    return _NON_ALNUM_RE.sub("_", value).lower()


def entry_id(platform_name: str, filename: str) -> str:
    """Deterministic entry id: lower-cased, non-alphanumerics replaced by '_'."""
    return slugify(f"{platform_name}__{filename}")


def listing_url(base_url: str, platform_name: Optional[str] = None) -> str:
    base = base_url.rstrip("/")
    if platform_name is None:
        return f"{base}/"
    return f"{base}/{quote(platform_name, safe=_URL_SAFE)}/"


def download_url(platform_name: str, filename: str, *, base_url: str = ARCHIVE_BASE_URL) -> str:
    """Direct download link for *filename* inside *platform_name*."""
    return f"{listing_url(base_url, platform_name)}{quote(filename, safe=_URL_SAFE)}"


# ── Private helpers ───────────────────────────────────────────────────────────


async def _fetch_html(
    url: str,
    *,
    client: Optional[httpx.AsyncClient],
    timeout: float,
) -> str:
    """
    GET *url* and return the body text.

    Raises
    ------
    ArchiveFetchError
        On network error, timeout or non-2xx status.
    """
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own:
                response = await asyncio.wait_for(own.get(url), timeout)
        else:
            response = await asyncio.wait_for(client.get(url, timeout=timeout), timeout)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise ArchiveFetchError(
            url,
            f"server returned HTTP {exc.response.status_code}",
            status_code=exc.response.status_code,
        ) from exc
    except httpx.TimeoutException as exc:
        raise ArchiveFetchError(url, f"timed out after {timeout:g}s") from exc
    except asyncio.TimeoutError as exc:
        raise ArchiveFetchError(url, f"timed out after {timeout:g}s") from exc
    except httpx.HTTPError as exc:
        raise ArchiveFetchError(url, f"network error: {exc}") from exc

    return response.text


def _decode(value: str) -> str:
    """Percent-decode *value*, keeping it raw when it is not valid UTF-8."""
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value
