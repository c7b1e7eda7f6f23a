"""Trust scoring for stream candidates.

Four independent sub-scores (title, source and availability, quality and
size, metadata), each capped at 25, summed to an integer in [0, 100].
Weights are fixed so scores stay comparable across releases.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping

from streamsift.domain.entities.streams import RawCandidate, SourceFamily
from streamsift.infrastructure.matching.text_heuristics import compact_title

SUB_SCORE_CAP = 25
MAX_SCORE = 100

_GIB = 1024**3

DEFAULT_SOURCE_BONUS: dict[SourceFamily, int] = {
    SourceFamily.AGGREGATED_STREAM: 10,
    SourceFamily.QUALITY_INDEX: 8,
    SourceFamily.CROSS_REFERENCE: 0,
    SourceFamily.UNKNOWN: 0,
}

# (exclusive lower bound, points), checked top-down.
_SEED_TIERS: tuple[tuple[int, int], ...] = (
    (1000, 15),
    (500, 12),
    (100, 10),
    (50, 8),
    (10, 5),
)

_DOWNLOAD_TIERS: tuple[tuple[int, int], ...] = (
    (10000, 8),
    (1000, 5),
    (100, 3),
)

_EPISODE_TAG_RE = re.compile(r"S\d{2}E\d{2}", re.IGNORECASE)
_RELEASE_GROUP_RE = re.compile(
    r"\b(?:RARBG|SPARKS|AMIABLE|GECKOS|FUM|ION10)\b", re.IGNORECASE
)
_QUALITY_TOKEN_RE = re.compile(
    r"\b(4K|2160p|1080p|720p|480p|HDRip|BRRip|BluRay|WEB-DL|WEBDL|WEB)\b",
    re.IGNORECASE,
)
_AUDIO_RE = re.compile(r"\b(?:DTS|DD5\.1|Atmos|TrueHD|AAC)\b", re.IGNORECASE)
_YEAR_TOKEN_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_LANGUAGE_RE = re.compile(r"\b(?:Multi|DUAL)\b", re.IGNORECASE)
_ENCODING_RE = re.compile(r"\b(?:HDR|10bit|HEVC|x265)\b", re.IGNORECASE)

_QUALITY_TOKEN_POINTS: dict[str, int] = {
    "4k": 10,
    "2160p": 10,
    "bluray": 10,
    "1080p": 8,
    "web-dl": 8,
    "webdl": 8,
    "720p": 6,
    "brrip": 6,
}


def _tiered(value: int | None, tiers: Iterable[tuple[int, int]]) -> int:
    if not value:
        return 0
    for threshold, points in tiers:
        if value > threshold:
            return points
    return 0


def _size_points(size_bytes: float | None) -> int:
    if not size_bytes or size_bytes <= 0:
        return 0
    # Whole GB, halves rounded up, so 8.3 GB still sits in the top band.
    gb = math.floor(size_bytes / _GIB + 0.5)
    if 1 <= gb <= 8:
        return 10
    if 0.5 < gb <= 15:
        return 8
    if 0.1 < gb <= 20:
        return 5
    return 0


class TrustScorer:
    """Score how likely a candidate is a genuine, healthy release.

    Args:
        source_bonus: Points per source family, overriding the defaults.
    """

    def __init__(self, source_bonus: Mapping[SourceFamily, int] | None = None) -> None:
        self._source_bonus = {**DEFAULT_SOURCE_BONUS, **(source_bonus or {})}

    def score(
        self,
        candidate: RawCandidate,
        reference_title: str,
        reference_year: int | None = None,
    ) -> int:
        """Trust score in [0, 100] for *candidate* against the requested title."""
        title = candidate.raw_title or ""
        total = (
            self._title_score(title, reference_title)
            + self._source_score(candidate)
            + self._quality_score(title, candidate.size_bytes)
            + self._metadata_score(title, reference_year, candidate.download_count)
        )
        return max(0, min(total, MAX_SCORE))

    def _title_score(self, title: str, reference_title: str) -> int:
        points = 0
        reference = compact_title(reference_title)
        if reference and reference in compact_title(title):
            points += 15
        if _EPISODE_TAG_RE.search(title):
            points += 5
        if _RELEASE_GROUP_RE.search(title):
            points += 5
        return min(points, SUB_SCORE_CAP)

    def _source_score(self, candidate: RawCandidate) -> int:
        points = self._source_bonus.get(candidate.source_tag, 0)
        points += _tiered(candidate.seed_count, _SEED_TIERS)
        return min(points, SUB_SCORE_CAP)

    def _quality_score(self, title: str, size_bytes: float | None) -> int:
        points = 0
        m = _QUALITY_TOKEN_RE.search(title)
        if m:
            points += _QUALITY_TOKEN_POINTS.get(m.group(1).lower(), 0)
        if _AUDIO_RE.search(title):
            points += 5
        points += _size_points(size_bytes)
        return min(points, SUB_SCORE_CAP)

    def _metadata_score(
        self,
        title: str,
        reference_year: int | None,
        download_count: int | None,
    ) -> int:
        points = 0
        if reference_year:
            m = _YEAR_TOKEN_RE.search(title)
            if m and int(m.group(0)) == reference_year:
                points += 8
        if _LANGUAGE_RE.search(title):
            points += 4
        if _ENCODING_RE.search(title):
            points += 5
        points += _tiered(download_count, _DOWNLOAD_TIERS)
        return min(points, SUB_SCORE_CAP)

