"""Heuristics over free-text release titles.

Pure transformation logic with no I/O.
Release titles follow no standard; every extractor here is a best-effort
guess tuned against the naming conventions seen in public indexes.

Uses **rapidfuzz** for fuzzy title containment and **unidecode** for
transliterating non-ASCII titles before comparison.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from rapidfuzz import fuzz
from unidecode import unidecode as _unidecode

from streamsift.domain.entities.streams import (
    QUALITY_TIERS,
    UNKNOWN_QUALITY,
    SeasonEpisode,
    SeasonInfo,
)

# Unlabelled releases are assumed to be HD-ish rather than unknown.
DEFAULT_QUALITY = "720P"

MAX_SEASON = 100
MAX_EPISODE = 100

_NON_ALNUM_RE = re.compile(r"[^a-z0-9 ]")
_PARENTHETICAL_RE = re.compile(r"\s*[(\[][^)\]]*[)\]]")
_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")
_SIZE_RE = re.compile(r"(\d+(?:\.\d+)?\s*[KMGT]B)", re.IGNORECASE)
_HEX_HASH_RE = re.compile(r"^[0-9a-fA-F]+$")
_BASE32_HASH_RE = re.compile(r"^[A-Za-z2-7]{32}$")

# --- Quality ---

_QUALITY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:4K|2160p)\b", re.IGNORECASE), "2160P"),
    (re.compile(r"\b1080p\b", re.IGNORECASE), "1080P"),
    (re.compile(r"\b720p\b", re.IGNORECASE), "720P"),
    (re.compile(r"\b480p\b", re.IGNORECASE), "480P"),
)

_QUALITY_ALIASES: dict[str, str] = {
    "4K": "2160P",
    "UHD": "2160P",
    "2160P": "2160P",
    "1080P": "1080P",
    "720P": "720P",
    "480P": "480P",
}

# --- Season / episode ---

_TV_CONTEXT_RE = re.compile(r"\b(?:tv|series|show)\b", re.IGNORECASE)


@dataclass(frozen=True)
class _EpisodePattern:
    name: str
    regex: re.Pattern[str]
    needs_tv_context: bool = False


# Evaluated in order; the first accepted match wins.
_COMBINED_PATTERNS: tuple[_EpisodePattern, ...] = (
    _EpisodePattern("s01e01", re.compile(r"\bS(\d{1,2})[\s._-]*E(\d{1,2})\b", re.I)),
    _EpisodePattern(
        "season_episode",
        re.compile(r"\bSeason[\s.-]*(\d{1,2})[\s.-]*Episode[\s.-]*(\d{1,2})\b", re.I),
    ),
    _EpisodePattern("1x01", re.compile(r"\b(\d{1,2})x(\d{2})\b", re.I)),
    _EpisodePattern("s01.e01", re.compile(r"\bS(\d{1,2})\.E(\d{1,2})\b", re.I)),
    _EpisodePattern("[1.01]", re.compile(r"\[(\d{1,2})\.(\d{2})\]")),
    _EpisodePattern(
        "season_dash", re.compile(r"\bSeason[\s.-]*(\d{1,2})[\s.-]+(\d{2})\b", re.I)
    ),
    _EpisodePattern("se_dash", re.compile(r"\bSE[\s.-]*(\d{1,2})[\s.-]*(\d{2})\b", re.I)),
    # 101 -> S1E01; too ambiguous without a TV keyword nearby.
    _EpisodePattern("bare_101", re.compile(r"\b(\d)(\d{2})\b"), needs_tv_context=True),
)

_SEASON_ONLY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bS(\d{1,2})\b", re.I),
    re.compile(r"\bSeason[\s.-]*(\d{1,2})\b", re.I),
    re.compile(r"\bSeries[\s.-]*(\d{1,2})\b", re.I),
)

_EPISODE_ONLY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bE(\d{1,2})\b", re.I),
    re.compile(r"\bEp(\d{1,2})\b", re.I),
    re.compile(r"\bEpisode[\s.-]*(\d{1,2})\b", re.I),
)


@dataclass(frozen=True)
class SeasonBounds:
    """Known season count and per-season episode counts for a series."""

    season_count: int | None = None
    episode_counts: Mapping[int, int] = field(default_factory=dict)

    @classmethod
    def from_seasons(cls, seasons: Iterable[SeasonInfo]) -> SeasonBounds:
        regular = [s for s in seasons if s.season_number > 0]
        if not regular:
            return cls()
        return cls(
            season_count=max(s.season_number for s in regular),
            episode_counts={
                s.season_number: s.episode_count
                for s in regular
                if s.episode_count > 0
            },
        )


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------


def normalize_title(text: str) -> str:
    """Lowercase, transliterate to ASCII, drop punctuation, collapse whitespace."""
    text = _unidecode(text or "").lower()
    text = _NON_ALNUM_RE.sub("", text)
    return " ".join(text.split())


def compact_title(text: str) -> str:
    """``normalize_title`` without spaces (``"The.Matrix"`` == ``"the matrix"``)."""
    return normalize_title(text).replace(" ", "")


def strip_parentheticals(title: str) -> str:
    """Remove ``(1999)``/``[US]`` style groups from a display title."""
    return " ".join(_PARENTHETICAL_RE.sub(" ", title).split())


def title_variations(title: str, year: int | None = None) -> list[str]:
    """Search/match variants of a reference title, deduplicated in order.

    ``"The Matrix (1999)"`` yields the title itself, the title without the
    parenthetical group, a punctuation-free variant, and year-suffixed
    forms of each when *year* is given.
    """
    bases = [title.strip()]
    stripped = strip_parentheticals(title)
    if stripped:
        bases.append(stripped)
    clean = " ".join(re.sub(r"[^A-Za-z0-9 ]", " ", stripped or title).split())
    if clean:
        bases.append(clean)

    variants: list[str] = []
    for base in bases:
        variants.append(base)
        if year:
            variants.append(f"{base} {year}")

    seen: set[str] = set()
    out: list[str] = []
    for v in variants:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


def titles_match(candidate: str, reference: str, *, threshold: int = 90) -> bool:
    """True when *candidate* plausibly names *reference*.

    The reference must appear in the candidate (space-insensitive), else
    a rapidfuzz score of at least *threshold* on the normalised forms.
    A candidate shorter than the reference is compared whole with
    ``ratio`` so that fragments ("Rings") never pass for the full title.
    """
    ref = compact_title(reference)
    cand = compact_title(candidate)
    if not ref or not cand:
        return False
    if ref in cand:
        return True
    cand_norm = normalize_title(candidate)
    ref_norm = normalize_title(reference)
    if len(cand_norm) < len(ref_norm):
        score = fuzz.ratio(cand_norm, ref_norm, processor=None)
    else:
        score = fuzz.partial_ratio(cand_norm, ref_norm, processor=None)
    return score >= threshold


def extract_year(title: str) -> int | None:
    """First 19xx/20xx token in *title*, or None."""
    m = _YEAR_RE.search(title or "")
    return int(m.group(1)) if m else None


# ---------------------------------------------------------------------------
# Quality and size
# ---------------------------------------------------------------------------


def canonical_quality(token: str | None) -> str:
    """Map a quality label (``"1080p"``, ``"4k"``, ``"UHD"``) to its canonical token."""
    if not token:
        return UNKNOWN_QUALITY
    upper = token.strip().upper()
    if upper in _QUALITY_ALIASES:
        return _QUALITY_ALIASES[upper]
    for pattern, canonical in _QUALITY_PATTERNS:
        if pattern.search(upper):
            return canonical
    return UNKNOWN_QUALITY


def extract_quality(title: str, hint: str | None = None) -> str:
    """Canonical quality of a release.

    A recognisable *hint* (e.g. the quality field of an index) wins over
    the title.  Otherwise the first of 4K/2160p, 1080p, 720p, 480p found in
    the title.  Unlabelled releases default to ``"720P"``.
    """
    if hint:
        canonical = canonical_quality(hint)
        if canonical in QUALITY_TIERS:
            return canonical

    for pattern, canonical in _QUALITY_PATTERNS:
        if pattern.search(title or ""):
            return canonical
    return DEFAULT_QUALITY


def extract_size_label(title: str) -> str | None:
    """Size token such as ``"1.4 GB"`` from *title*, unit uppercased."""
    m = _SIZE_RE.search(title or "")
    return m.group(1).upper() if m else None


def format_bytes(num_bytes: float | None) -> str:
    """Human readable 1024-based size, e.g. ``"1.5 GB"``."""
    if not num_bytes or num_bytes <= 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB", "TB")
    value = float(num_bytes)
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    return f"{float(f'{value:.2f}'):g} {units[idx]}"


def size_label_for(title: str, size_bytes: float | None) -> str:
    """Size shown to users: title token, else formatted bytes, else Unknown."""
    label = extract_size_label(title)
    if label:
        return label
    if size_bytes:
        return format_bytes(size_bytes)
    return "Unknown"


def is_valid_info_hash(value: str | None) -> bool:
    """Hex-like hash, or the 32-char base32 form some indexes return."""
    if not value:
        return False
    value = value.strip()
    return bool(_HEX_HASH_RE.match(value) or _BASE32_HASH_RE.match(value))


# ---------------------------------------------------------------------------
# Season / episode
# ---------------------------------------------------------------------------


def _has_tv_context(title: str) -> bool:
    lowered = title.lower()
    return (
        "episode" in lowered
        or "season" in lowered
        or bool(_TV_CONTEXT_RE.search(title))
    )


def extract_season_episode(title: str) -> SeasonEpisode:
    """Season and episode numbers from a release title.

    Tries the combined patterns in priority order, then falls back to
    independent season-only and episode-only patterns, so either half may
    be None.
    """
    if not title:
        return SeasonEpisode(None, None)

    for pattern in _COMBINED_PATTERNS:
        m = pattern.regex.search(title)
        if not m:
            continue
        if pattern.needs_tv_context and not _has_tv_context(title):
            continue
        return SeasonEpisode(int(m.group(1)), int(m.group(2)))

    season = _first_number(_SEASON_ONLY_PATTERNS, title)
    episode = _first_number(_EPISODE_ONLY_PATTERNS, title)
    return SeasonEpisode(season, episode)


def _first_number(patterns: Iterable[re.Pattern[str]], title: str) -> int | None:
    for pattern in patterns:
        m = pattern.search(title)
        if m:
            return int(m.group(1))
    return None


def validate_season_episode(
    season: int | None,
    episode: int | None,
    bounds: SeasonBounds | None = None,
) -> bool:
    """Reject missing or implausible season/episode numbers.

    Both values must lie in [1, 100].  With *bounds*, the season may not
    exceed the known season count and the episode may not exceed that
    season's known episode count.
    """
    if season is None or episode is None:
        return False
    if not 1 <= season <= MAX_SEASON:
        return False
    if not 1 <= episode <= MAX_EPISODE:
        return False

    if bounds is None:
        return True
    if bounds.season_count and season > bounds.season_count:
        return False
    episode_count = bounds.episode_counts.get(season)
    if episode_count and episode > episode_count:
        return False
    return True
