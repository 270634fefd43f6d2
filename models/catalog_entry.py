"""
models/catalog_entry.py – Immutable data models for the archive catalogue.
"""

from dataclasses import dataclass, field
from typing import Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

UNKNOWN: str = "Unknown"


@dataclass(frozen=True)
class ParsedFilename:
    """
    Metadata extracted from a single archive filename.

    Attributes
    ----------
    title     : Filename with extension and every bracket group removed.
    region    : Region string verbatim (e.g. "USA, Europe"), or "Unknown".
    languages : Ordered language names; never empty.
    """

    title: str
    region: str = UNKNOWN
    languages: Tuple[str, ...] = (UNKNOWN,)


@dataclass(frozen=True)
class CatalogEntry:
    """
    Represents one file in a platform directory of the archive.

    Attributes
    ----------
    id           : Stable id derived from platform name + filename.
    title        : Human-readable game title.
    filename     : Decoded archive filename (e.g. "Tetris (World).zip").
    region       : Region string, "Unknown" when not present.
    languages    : Ordered language names; ["Unknown"] when undetermined.
    platform_id  : Archive directory name the file was listed under.
    download_url : Absolute, ready-to-use URL of the file.
    """

    id: str
    title: str
    filename: str
    region: str
    languages: Tuple[str, ...]
    platform_id: str
    download_url: str = ""

    def __str__(self) -> str:
        return f"{self.title}  [{self.region}]  ({', '.join(self.languages)})"


@dataclass(frozen=True)
class Platform:
    """
    One hardware platform directory at the archive root.

    Attributes
    ----------
    id           : Lower-cased name with non-alphanumerics replaced.
    name         : Exact archive directory name (lookup key).
    display_name : Name with its manufacturer prefix stripped.
    """

    id: str
    name: str
    display_name: str

    def __str__(self) -> str:
        return self.display_name


@dataclass(frozen=True)
class CoverCandidate:
    """A single result returned by a cover search source."""

    name: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value stamped with the wall-clock time it was fetched."""

    value: T
    fetched_at_ms: int = field(default=0)
