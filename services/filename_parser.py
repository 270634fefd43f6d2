"""
services/filename_parser.py – Heuristic metadata extraction from archive filenames.

No-Intro style names carry their metadata in parenthesised groups:

    007 - Everything or Nothing (USA, Europe) (En,Fr,De).zip
    └──────── title ──────────┘ └─ region ─┘ └ languages┘

Only the last two groups are inspected.  The last one is a language group when
it contains a comma or an exact two-letter language code, otherwise it is the
region.  When no language group is present the languages are inferred from the
region.  Every lookup table lives in ParserRules so archives with other naming
conventions can be handled by passing different rules.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from models.catalog_entry import UNKNOWN, ParsedFilename

# ── Default rule tables ──────────────────────────────────────────────────────

ARCHIVE_EXTENSIONS: Tuple[str, ...] = (".zip",)

LANGUAGE_CODES: Dict[str, str] = {
    "En": "English",
    "Ja": "Japanese",
    "Fr": "French",
    "De": "German",
    "Es": "Spanish",
    "It": "Italian",
    "Pt": "Portuguese",
    "Nl": "Dutch",
    "Sv": "Swedish",
    "Da": "Danish",
    "Fi": "Finnish",
    "No": "Norwegian",
    "Pl": "Polish",
    "Ru": "Russian",
    "Ko": "Korean",
    "Zh": "Chinese",
    "Ar": "Arabic",
    "Tr": "Turkish",
    "Cs": "Czech",
    "Hu": "Hungarian",
    "Ro": "Romanian",
    "Th": "Thai",
    "El": "Greek",
    "He": "Hebrew",
}

# Insertion order matters: inference takes the first key that matches.
REGION_LANGUAGES: Dict[str, Tuple[str, ...]] = {
    "USA": ("English",),
    "Europe": ("English", "French", "German", "Spanish", "Italian"),
    "Japan": ("Japanese",),
    "Korea": ("Korean",),
    "China": ("Chinese",),
    "Asia": ("English", "Chinese", "Japanese", "Korean"),
    "World": ("English",),
    "UK": ("English",),
    "Germany": ("German",),
    "France": ("French",),
    "Spain": ("Spanish",),
    "Italy": ("Italian",),
    "Netherlands": ("Dutch",),
    "Sweden": ("Swedish",),
    "Denmark": ("Danish",),
    "Finland": ("Finnish",),
    "Norway": ("Norwegian",),
    "Poland": ("Polish",),
    "Russia": ("Russian",),
    "Brazil": ("Portuguese",),
    "Australia": ("English",),
    "Canada": ("English", "French"),
}

_GROUP_RE = re.compile(r"\(([^)]+)\)")
_GROUP_STRIP_RE = re.compile(r"\s*\([^)]*\)")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParserRules:
    """
    Lookup tables driving the bracket-group heuristic.

    Attributes
    ----------
    extensions       : Archive extensions stripped from the filename.
    language_codes   : Code → language name (codes matched case-sensitively).
    region_languages : Region → languages used when no language group exists.
    """

    extensions: Tuple[str, ...] = ARCHIVE_EXTENSIONS
    language_codes: Dict[str, str] = field(default_factory=lambda: dict(LANGUAGE_CODES))
    region_languages: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(REGION_LANGUAGES)
    )

    def has_archive_extension(self, name: str) -> bool:
        lowered = name.lower()
        return any(lowered.endswith(ext.lower()) for ext in self.extensions)


DEFAULT_RULES = ParserRules()


# ── Public API ───────────────────────────────────────────────────────────────


def parse_filename(filename: str, rules: ParserRules = DEFAULT_RULES) -> ParsedFilename:
    """
    Split *filename* into title, region and languages.

    Never raises: names that fit no known pattern fall back to "Unknown"
    region and ["Unknown"] languages.
    """
    stem = strip_extension(filename, rules.extensions)
    groups = _GROUP_RE.findall(stem)
    if not groups:
        return ParsedFilename(title=stem.strip())

    title = _WHITESPACE_RE.sub(" ", _GROUP_STRIP_RE.sub("", stem)).strip()

    region = ""
    languages: List[str] = []
    last = groups[-1]
    previous = groups[-2] if len(groups) > 1 else None

    if is_language_group(last, rules):
        languages = _parse_languages(last, rules)
        if previous is not None:
            region = previous
    else:
        region = last
        if previous is not None and is_language_group(previous, rules):
            languages = _parse_languages(previous, rules)

    if not languages and region:
        languages = list(infer_languages(region, rules) or ())

    return ParsedFilename(
        title=title,
        region=region or UNKNOWN,
        languages=tuple(languages) if languages else (UNKNOWN,),
    )


def strip_extension(filename: str, extensions: Tuple[str, ...] = ARCHIVE_EXTENSIONS) -> str:
    lowered = filename.lower()
    for ext in extensions:
        if ext and lowered.endswith(ext.lower()):
            return filename[: -len(ext)]
    return filename


def is_language_group(content: str, rules: ParserRules = DEFAULT_RULES) -> bool:
    """True when *content* holds a comma or a whole-token language code."""
    if "," in content:
        return True
    return any(_code_pattern(code).search(content) for code in rules.language_codes)


def infer_languages(region: str, rules: ParserRules = DEFAULT_RULES) -> Optional[Tuple[str, ...]]:
    """
    Look up the languages spoken in *region*.

    A table key matches when the region contains it or it contains the region;
    compound regions such as "USA, Europe" are not split.
    """
    for key, languages in rules.region_languages.items():
        if key in region or region in key:
            return languages
    return None


# ── Private helpers ───────────────────────────────────────────────────────────


def _parse_languages(content: str, rules: ParserRules) -> List[str]:
    languages: List[str] = []
    for token in content.split(","):
        code = token.strip()
        languages.append(rules.language_codes.get(code, code))
    return languages


_CODE_PATTERNS: Dict[str, "re.Pattern[str]"] = {}


def _code_pattern(code: str) -> "re.Pattern[str]":
    pattern = _CODE_PATTERNS.get(code)
    if pattern is None:
        pattern = re.compile(rf"(?:^|,|\s){re.escape(code)}(?:$|,|\s)")
        _CODE_PATTERNS[code] = pattern
    return pattern
