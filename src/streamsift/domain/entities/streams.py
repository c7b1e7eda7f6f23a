"""Domain entities for stream aggregation.

Pure value objects with no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import NamedTuple


class MediaKind(StrEnum):
    """Kind of content a caller asks streams for."""

    MOVIE = "movie"
    SERIES = "series"


class SourceFamily(StrEnum):
    """Response-shape family of an upstream index endpoint."""

    CROSS_REFERENCE = "cross_reference"  # metadata provider external-id lookup
    QUALITY_INDEX = "quality_index"  # YTS-style per-quality torrent listing
    AGGREGATED_STREAM = "aggregated_stream"  # Torrentio-style stream listing
    UNKNOWN = "unknown"


class Tier(StrEnum):
    """Endpoint priority group, queried in declaration order."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    FALLBACK = "fallback"


class AggregationState(StrEnum):
    """Lifecycle of a single aggregation run."""

    NOT_STARTED = "not_started"
    FETCHING_PRIMARY = "fetching_primary"
    FETCHING_SECONDARY = "fetching_secondary"
    FETCHING_FALLBACK = "fetching_fallback"
    MERGING = "merging"
    CACHED = "cached"


# Canonical quality tokens, ranked (higher = better).
QUALITY_TIERS: dict[str, int] = {
    "2160P": 4,
    "1080P": 3,
    "720P": 2,
    "480P": 1,
}
UNKNOWN_QUALITY = "UNKNOWN"


def quality_tier(quality: str) -> int:
    """Rank of a canonical quality token (0 for unknown tokens)."""
    return QUALITY_TIERS.get(quality.upper(), 0)


class SeasonEpisode(NamedTuple):
    """Season/episode pair parsed from a release title."""

    season: int | None
    episode: int | None


@dataclass(frozen=True)
class ContentRef:
    """Title a caller wants streams for."""

    id: str
    title: str
    media_kind: MediaKind
    year: int | None = None


@dataclass(frozen=True)
class TitleInfo:
    """Title and release year reported by the metadata provider."""

    title: str
    media_kind: MediaKind
    year: int | None = None


@dataclass(frozen=True)
class SeasonInfo:
    """One season as reported by the metadata provider."""

    season_number: int
    episode_count: int
    name: str = ""


@dataclass(frozen=True)
class EndpointTiers:
    """Fully-substituted endpoint URLs grouped by tier."""

    primary: tuple[str, ...] = ()
    secondary: tuple[str, ...] = ()
    fallback: tuple[str, ...] = ()


@dataclass(frozen=True)
class RawCandidate:
    """Unnormalized search result from one source."""

    source_tag: SourceFamily
    raw_title: str
    info_hash: str | None = None
    size_bytes: float | None = None
    seed_count: int | None = None
    peer_count: int | None = None
    declared_quality: str | None = None
    download_count: int | None = None
    source_url: str = ""


@dataclass(frozen=True)
class NormalizedStream:
    """A candidate after extraction, validation and scoring."""

    title: str
    info_hash: str
    quality: str
    size_label: str
    magnet_uri: str
    seeds: int = 0
    peers: int = 0
    trust_score: int = 0
    season: int | None = None
    episode: int | None = None
    source_tag: SourceFamily = SourceFamily.UNKNOWN

    @property
    def availability(self) -> int:
        return self.seeds + self.peers

    @property
    def quality_tier(self) -> int:
        return quality_tier(self.quality)


@dataclass(frozen=True)
class EpisodeBucket:
    """Streams for one (season, episode), at most one per quality."""

    season: int
    episode: int
    title: str
    torrents: tuple[NormalizedStream, ...] = ()

    @property
    def best(self) -> NormalizedStream | None:
        return self.torrents[0] if self.torrents else None


@dataclass(frozen=True)
class SeasonSummary:
    """Per-season availability shown next to the episode list."""

    season: int
    episode_count: int
    available_episode_count: int
    name: str = ""


@dataclass(frozen=True)
class AggregationResult:
    """Outcome of one aggregation run.

    Movies fill ``torrents``; series fill ``seasons`` and ``episodes``.
    Instances are shared through the result cache and never mutated.
    """

    content_id: str
    title: str
    media_kind: MediaKind
    torrents: tuple[NormalizedStream, ...] = ()
    seasons: tuple[SeasonSummary, ...] = ()
    episodes: tuple[EpisodeBucket, ...] = field(default=())

    @property
    def is_empty(self) -> bool:
        return not self.torrents and not self.episodes

    def all_streams(self) -> list[NormalizedStream]:
        """Every stream in the result, movie torrents or episode torrents."""
        streams = list(self.torrents)
        for bucket in self.episodes:
            streams.extend(bucket.torrents)
        return streams

    def ranked_by_trust(self) -> AggregationResult:
        """Copy with every torrent list ordered by trust, then seeds, then quality.

        Episode order is kept; only the torrents inside each bucket move.
        """
        return replace(
            self,
            torrents=_by_trust(self.torrents),
            episodes=tuple(
                replace(bucket, torrents=_by_trust(bucket.torrents))
                for bucket in self.episodes
            ),
        )


def _by_trust(streams: tuple[NormalizedStream, ...]) -> tuple[NormalizedStream, ...]:
    return tuple(
        sorted(
            streams,
            key=lambda s: (s.trust_score, s.seeds, s.quality_tier),
            reverse=True,
        )
    )


def result_cache_key(media_kind: MediaKind, content_id: str) -> str:
    """Cache key of an aggregation result, e.g. ``movie-27205``."""
    return f"{media_kind.value}-{content_id}"
