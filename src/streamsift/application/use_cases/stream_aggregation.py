"""Tiered stream aggregation use cases.

content id + title -> cache check -> tiered endpoint fan-out
-> adapt -> normalize/score -> dedupe/merge -> cache write.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol

import structlog

from streamsift.domain.entities.streams import (
    AggregationResult,
    AggregationState,
    ContentRef,
    EndpointTiers,
    EpisodeBucket,
    MediaKind,
    NormalizedStream,
    RawCandidate,
    SeasonEpisode,
    SeasonInfo,
    SeasonSummary,
    SourceFamily,
    Tier,
    TitleInfo,
    result_cache_key,
)
from streamsift.domain.ports.cache import CachePort
from streamsift.domain.ports.fetcher import FetcherPort
from streamsift.domain.ports.metadata import MetadataProviderPort
from streamsift.infrastructure.matching.magnet import DEFAULT_TRACKERS, build_magnet
from streamsift.infrastructure.matching.text_heuristics import (
    SeasonBounds,
    extract_quality,
    extract_season_episode,
    is_valid_info_hash,
    size_label_for,
    title_variations,
    titles_match,
    validate_season_episode,
)

log = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Protocols - what the aggregators need from their collaborators.
# Infrastructure components satisfy these via structural subtyping.
# ---------------------------------------------------------------------------


class _AggregationConfig(Protocol):
    """Configuration values consumed by the aggregators."""

    tier_pacing_seconds: float
    deadline_seconds: float
    min_distinct_qualities: int
    max_concurrent_fetches: int
    title_match_threshold: int


class _Router(Protocol):
    """Builds tiered URLs and translates source payloads."""

    def route(
        self,
        content_id: str,
        *,
        media_kind: MediaKind,
        external_id: str | None = None,
        title: str | None = None,
    ) -> EndpointTiers: ...

    def family_of(self, url: str) -> SourceFamily: ...

    def request_options(self, url: str) -> tuple[dict[str, str], dict[str, str]]: ...

    def adapt(self, source_url: str, payload: Any, *, title: str) -> list[RawCandidate]: ...

    def follow_ups(
        self, source_url: str, payload: Any, *, media_kind: MediaKind
    ) -> list[str]: ...

    def follow_ups_for(self, imdb_id: str, *, media_kind: MediaKind) -> list[str]: ...


class _Scorer(Protocol):
    """Assigns a 0-100 trust score to a candidate."""

    def score(
        self,
        candidate: RawCandidate,
        reference_title: str,
        reference_year: int | None = None,
    ) -> int: ...


class _MetricsRecorder(Protocol):
    """Records fetch and aggregation metrics."""

    def record_fetch(
        self,
        source: str,
        duration_ns: int,
        candidate_count: int,
        *,
        success: bool,
    ) -> None: ...

    def record_aggregation(
        self,
        media_kind: str,
        *,
        cache_hit: bool = False,
        fallback_used: bool = False,
        deadline_exceeded: bool = False,
        stream_count: int = 0,
    ) -> None: ...


# ---------------------------------------------------------------------------
# Merge helpers (pure)
# ---------------------------------------------------------------------------


def candidate_quality(candidate: RawCandidate) -> str:
    return extract_quality(candidate.raw_title, candidate.declared_quality)


def distinct_qualities(candidates: Iterable[RawCandidate]) -> set[str]:
    """Canonical qualities among candidates that carry a usable hash."""
    return {
        candidate_quality(c) for c in candidates if is_valid_info_hash(c.info_hash)
    }


def discovered_seasons(candidates: Iterable[RawCandidate]) -> set[int]:
    """Season numbers parseable from candidate titles."""
    seasons: set[int] = set()
    for c in candidates:
        season = extract_season_episode(c.raw_title).season
        if season:
            seasons.add(season)
    return seasons


def dedupe_by_hash(streams: Iterable[NormalizedStream]) -> list[NormalizedStream]:
    """One stream per info hash (case-insensitive), max seeds wins."""
    best: dict[str, NormalizedStream] = {}
    for s in streams:
        key = s.info_hash.lower()
        current = best.get(key)
        if current is None or s.seeds > current.seeds:
            best[key] = s
    return list(best.values())


def best_per_quality(streams: Iterable[NormalizedStream]) -> list[NormalizedStream]:
    """One stream per canonical quality: most seeds wins, ties keep the first."""
    best: dict[str, NormalizedStream] = {}
    for s in streams:
        current = best.get(s.quality)
        if current is None or s.seeds > current.seeds:
            best[s.quality] = s
    return list(best.values())


def sort_by_availability(streams: Iterable[NormalizedStream]) -> list[NormalizedStream]:
    """Seeds + peers descending, then quality tier descending (stable)."""
    return sorted(streams, key=lambda s: (s.availability, s.quality_tier), reverse=True)


def build_episode_buckets(
    streams: Iterable[NormalizedStream], show_title: str
) -> tuple[EpisodeBucket, ...]:
    """Group streams by (season, episode); buckets ordered season, episode."""
    grouped: dict[tuple[int, int], list[NormalizedStream]] = {}
    for s in streams:
        if s.season is None or s.episode is None:
            continue
        grouped.setdefault((s.season, s.episode), []).append(s)

    buckets: list[EpisodeBucket] = []
    for season, episode in sorted(grouped):
        torrents = sort_by_availability(best_per_quality(grouped[(season, episode)]))
        buckets.append(
            EpisodeBucket(
                season=season,
                episode=episode,
                title=f"{show_title} S{season:02d}E{episode:02d}",
                torrents=tuple(torrents),
            )
        )
    return tuple(buckets)


def summarize_seasons(
    buckets: Sequence[EpisodeBucket],
    season_info: Sequence[SeasonInfo],
) -> tuple[SeasonSummary, ...]:
    """Per-season availability.

    With provider season info: regular seasons (number > 0) that have at
    least one available episode.  Without it: every discovered season,
    with an unknown (0) episode count.
    """
    available = Counter(b.season for b in buckets)
    regular = sorted(
        (s for s in season_info if s.season_number > 0),
        key=lambda s: s.season_number,
    )
    if regular:
        return tuple(
            SeasonSummary(
                season=s.season_number,
                episode_count=s.episode_count,
                available_episode_count=available[s.season_number],
                name=s.name,
            )
            for s in regular
            if available[s.season_number] > 0
        )
    return tuple(
        SeasonSummary(
            season=season,
            episode_count=0,
            available_episode_count=count,
            name=f"Season {season}",
        )
        for season, count in sorted(available.items())
    )


# ---------------------------------------------------------------------------
# Aggregators
# ---------------------------------------------------------------------------


@dataclass
class _RunContext:
    """Per-run state; aggregators themselves are shared and stateless."""

    ref: ContentRef
    external_id: str | None = None
    year: int | None = None
    seasons: list[SeasonInfo] = field(default_factory=list)
    bounds: SeasonBounds | None = None
    state: AggregationState = AggregationState.NOT_STARTED
    fallback_used: bool = False
    fetched: set[str] = field(default_factory=set)

    def advance(self, state: AggregationState) -> None:
        log.info(
            "aggregation_state",
            previous=self.state.value,
            state=state.value,
        )
        self.state = state


class StreamAggregator(ABC):
    """Shared tiered fan-out, normalization and caching.

    Subclasses decide how to prepare a run (metadata lookups), when the
    fallback tier is worth querying, how to locate a candidate within the
    content, and how to merge normalized streams into a result.
    """

    media_kind: ClassVar[MediaKind]

    def __init__(
        self,
        *,
        fetcher: FetcherPort,
        router: _Router,
        cache: CachePort,
        scorer: _Scorer,
        config: _AggregationConfig,
        metadata: MetadataProviderPort | None = None,
        trackers: Sequence[str] = DEFAULT_TRACKERS,
        metrics: _MetricsRecorder | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._router = router
        self._cache = cache
        self._scorer = scorer
        self._metadata = metadata
        self._trackers = tuple(trackers)
        self._metrics = metrics
        self._pacing = config.tier_pacing_seconds
        self._deadline = config.deadline_seconds
        self._min_distinct_qualities = config.min_distinct_qualities
        self._max_concurrent = config.max_concurrent_fetches
        self._title_threshold = config.title_match_threshold

    # ------------------------------------------------------------------
    # Run orchestration
    # ------------------------------------------------------------------

    async def aggregate(
        self, ref: ContentRef, *, external_id: str | None = None
    ) -> AggregationResult:
        """Cached or freshly aggregated result for *ref*.

        Never raises for upstream failures; a run that exceeds the
        deadline yields an empty result that is not cached.
        """
        key = result_cache_key(self.media_kind, ref.id)
        with structlog.contextvars.bound_contextvars(
            content_id=ref.id, media_kind=self.media_kind.value
        ):
            cached = await self._cache.get(key)
            if cached is not None:
                log.info("aggregation_cache_hit", key=key)
                self._record(cache_hit=True, stream_count=len(cached.all_streams()))
                return cached

            ctx = _RunContext(ref=ref, external_id=external_id, year=ref.year)
            try:
                result = await asyncio.wait_for(self._run(ctx), timeout=self._deadline)
            except TimeoutError:
                log.warning(
                    "aggregation_deadline_exceeded",
                    deadline=self._deadline,
                    state=ctx.state.value,
                )
                self._record(deadline_exceeded=True, fallback_used=ctx.fallback_used)
                return self._empty_result(ref)

            await self._cache.set(key, result)
            ctx.advance(AggregationState.CACHED)

            stream_count = len(result.all_streams())
            log.info(
                "aggregation_complete",
                stream_count=stream_count,
                fallback_used=ctx.fallback_used,
            )
            self._record(fallback_used=ctx.fallback_used, stream_count=stream_count)
            return result

    async def _run(self, ctx: _RunContext) -> AggregationResult:
        await self._prepare(ctx)
        ref = ctx.ref
        tiers = self._router.route(
            ref.id,
            media_kind=self.media_kind,
            external_id=ctx.external_id,
            title=ref.title,
        )

        ctx.advance(AggregationState.FETCHING_PRIMARY)
        candidates = await self._fetch_tier(Tier.PRIMARY, tiers.primary, ctx)

        await self._pace()
        ctx.advance(AggregationState.FETCHING_SECONDARY)
        candidates += await self._fetch_tier(Tier.SECONDARY, tiers.secondary, ctx)

        if tiers.fallback and self._needs_fallback(candidates, ctx):
            await self._pace()
            ctx.advance(AggregationState.FETCHING_FALLBACK)
            ctx.fallback_used = True
            candidates += await self._fetch_tier(Tier.FALLBACK, tiers.fallback, ctx)

        ctx.advance(AggregationState.MERGING)
        streams = self._normalize_all(candidates, ctx)
        return self._merge(streams, ctx)

    async def _pace(self) -> None:
        if self._pacing > 0:
            await asyncio.sleep(self._pacing)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _fetch_tier(
        self, tier: Tier, urls: Sequence[str], ctx: _RunContext
    ) -> list[RawCandidate]:
        """Fetch every URL of a tier concurrently (bounded) and adapt results.

        A URL is fetched at most once per run.  Cross-reference lookups are
        replaced by their follow-ups once the external id is known.
        """
        if not urls:
            return []
        ref = ctx.ref
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def _fetch_one(url: str) -> list[RawCandidate]:
            if url in ctx.fetched:
                log.debug("aggregation_url_already_fetched", url=url)
                return []
            ctx.fetched.add(url)
            if ctx.external_id and (
                self._router.family_of(url) == SourceFamily.CROSS_REFERENCE
            ):
                known = self._router.follow_ups_for(
                    ctx.external_id, media_kind=self.media_kind
                )
                log.debug("aggregation_cross_reference_skipped", url=url)
                nested = await asyncio.gather(*(_fetch_one(u) for u in known))
                return [c for batch in nested for c in batch]

            t0 = time.perf_counter_ns()
            async with semaphore:
                payload = await self._fetch_source(url)
            candidates = (
                self._router.adapt(url, payload, title=ref.title)
                if payload is not None
                else []
            )
            if self._metrics is not None:
                self._metrics.record_fetch(
                    self._router.family_of(url).value,
                    time.perf_counter_ns() - t0,
                    len(candidates),
                    success=payload is not None,
                )
            if payload is None:
                return []

            follow_ups = self._router.follow_ups(url, payload, media_kind=self.media_kind)
            if follow_ups:
                log.debug("aggregation_follow_ups", url=url, count=len(follow_ups))
                nested = await asyncio.gather(*(_fetch_one(u) for u in follow_ups))
                for extra in nested:
                    candidates.extend(extra)
            return candidates

        results = await asyncio.gather(*(_fetch_one(u) for u in urls))
        candidates = [c for batch in results for c in batch]
        log.info(
            "aggregation_tier_done",
            tier=tier.value,
            url_count=len(urls),
            candidate_count=len(candidates),
        )
        return candidates

    async def _fetch_source(self, url: str) -> Any | None:
        """One source fetch; unexpected errors count as an unavailable source."""
        headers, params = self._router.request_options(url)
        try:
            return await self._fetcher.fetch(url, headers=headers, params=params or None)
        except Exception:  # noqa: BLE001
            log.warning("aggregation_source_failed", url=url, exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def _normalize_all(
        self, candidates: Sequence[RawCandidate], ctx: _RunContext
    ) -> list[NormalizedStream]:
        references = title_variations(ctx.ref.title)
        rejected: Counter[str] = Counter()
        streams: list[NormalizedStream] = []

        for c in candidates:
            if not is_valid_info_hash(c.info_hash):
                rejected["invalid_hash"] += 1
                continue
            if not any(
                titles_match(c.raw_title, r, threshold=self._title_threshold)
                for r in references
            ):
                rejected["title_mismatch"] += 1
                continue
            position = self._locate(c, ctx)
            if position is None:
                rejected["invalid_episode"] += 1
                continue
            streams.append(self._to_stream(c, ctx, position))

        if rejected:
            log.debug("aggregation_candidates_rejected", **rejected)
        return streams

    def _to_stream(
        self, c: RawCandidate, ctx: _RunContext, position: SeasonEpisode
    ) -> NormalizedStream:
        info_hash = (c.info_hash or "").strip()
        return NormalizedStream(
            title=c.raw_title,
            info_hash=info_hash,
            quality=candidate_quality(c),
            size_label=size_label_for(c.raw_title, c.size_bytes),
            magnet_uri=build_magnet(info_hash, c.raw_title, self._trackers),
            seeds=c.seed_count or 0,
            peers=c.peer_count or 0,
            trust_score=self._scorer.score(c, ctx.ref.title, ctx.year),
            season=position.season,
            episode=position.episode,
            source_tag=c.source_tag,
        )

    async def _lookup(self, name: str, coro: Any, default: Any) -> Any:
        """Await a metadata call; provider failures degrade to *default*."""
        try:
            return await coro
        except Exception:  # noqa: BLE001
            log.warning("aggregation_metadata_failed", lookup=name, exc_info=True)
            return default

    async def _resolve_external_id(self, ctx: _RunContext) -> None:
        if ctx.external_id or self._metadata is None:
            return
        ctx.external_id = await self._lookup(
            "external_id",
            self._metadata.get_external_id(ctx.ref.id, self.media_kind),
            None,
        )

    def _empty_result(self, ref: ContentRef) -> AggregationResult:
        return AggregationResult(
            content_id=ref.id, title=ref.title, media_kind=self.media_kind
        )

    def _record(self, **kwargs: Any) -> None:
        if self._metrics is not None:
            self._metrics.record_aggregation(self.media_kind.value, **kwargs)

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _prepare(self, ctx: _RunContext) -> None:
        """Fill external id, year and season info before routing."""

    @abstractmethod
    def _needs_fallback(self, candidates: Sequence[RawCandidate], ctx: _RunContext) -> bool:
        """Whether primary + secondary results are too thin."""

    @abstractmethod
    def _locate(self, c: RawCandidate, ctx: _RunContext) -> SeasonEpisode | None:
        """Season/episode of a candidate, or None to drop it."""

    @abstractmethod
    def _merge(self, streams: list[NormalizedStream], ctx: _RunContext) -> AggregationResult:
        """Deduplicate, group and order normalized streams."""


class MovieStreamAggregator(StreamAggregator):
    """Movies: one best stream per quality, fallback below N qualities."""

    media_kind = MediaKind.MOVIE

    async def aggregate_movie(
        self,
        content_id: str,
        title: str,
        year: int | None = None,
        external_id: str | None = None,
    ) -> AggregationResult | None:
        """Ranked movie streams; None only when id or title is missing."""
        if not content_id or not content_id.strip() or not title or not title.strip():
            log.warning("aggregation_missing_input", content_id=content_id, title=title)
            return None
        ref = ContentRef(
            id=content_id.strip(),
            title=title.strip(),
            media_kind=MediaKind.MOVIE,
            year=year,
        )
        return await self.aggregate(ref, external_id=external_id)

    async def _prepare(self, ctx: _RunContext) -> None:
        await self._resolve_external_id(ctx)
        if ctx.year is None and self._metadata is not None:
            info: TitleInfo | None = await self._lookup(
                "title", self._metadata.get_title(ctx.ref.id, self.media_kind), None
            )
            if info is not None:
                ctx.year = info.year

    def _needs_fallback(self, candidates: Sequence[RawCandidate], ctx: _RunContext) -> bool:
        found = distinct_qualities(candidates)
        needed = len(found) < self._min_distinct_qualities
        log.debug(
            "aggregation_fallback_check",
            qualities=sorted(found),
            needed=needed,
        )
        return needed

    def _locate(self, c: RawCandidate, ctx: _RunContext) -> SeasonEpisode | None:
        return SeasonEpisode(None, None)

    def _merge(self, streams: list[NormalizedStream], ctx: _RunContext) -> AggregationResult:
        torrents = sort_by_availability(best_per_quality(dedupe_by_hash(streams)))
        return AggregationResult(
            content_id=ctx.ref.id,
            title=ctx.ref.title,
            media_kind=self.media_kind,
            torrents=tuple(torrents),
        )


class SeriesStreamAggregator(StreamAggregator):
    """Series: per-episode buckets, fallback while seasons are missing."""

    media_kind = MediaKind.SERIES

    async def aggregate_series(
        self,
        content_id: str,
        title: str,
        external_id: str | None = None,
    ) -> AggregationResult | None:
        """Episode-bucketed streams; None only when id or title is missing."""
        if not content_id or not content_id.strip() or not title or not title.strip():
            log.warning("aggregation_missing_input", content_id=content_id, title=title)
            return None
        ref = ContentRef(
            id=content_id.strip(),
            title=title.strip(),
            media_kind=MediaKind.SERIES,
        )
        return await self.aggregate(ref, external_id=external_id)

    async def _prepare(self, ctx: _RunContext) -> None:
        if self._metadata is None:
            return
        info, seasons = await asyncio.gather(
            self._lookup(
                "title", self._metadata.get_title(ctx.ref.id, self.media_kind), None
            ),
            self._lookup("seasons", self._metadata.get_season_info(ctx.ref.id), []),
        )
        await self._resolve_external_id(ctx)
        if info is not None and ctx.year is None:
            ctx.year = info.year
        ctx.seasons = list(seasons or [])
        if ctx.seasons:
            ctx.bounds = SeasonBounds.from_seasons(ctx.seasons)

    def _needs_fallback(self, candidates: Sequence[RawCandidate], ctx: _RunContext) -> bool:
        expected = sum(1 for s in ctx.seasons if s.season_number > 0)
        found = discovered_seasons(candidates)
        needed = expected > len(found)
        log.debug(
            "aggregation_fallback_check",
            expected_seasons=expected,
            found_seasons=sorted(found),
            needed=needed,
        )
        return needed

    def _locate(self, c: RawCandidate, ctx: _RunContext) -> SeasonEpisode | None:
        season, episode = extract_season_episode(c.raw_title)
        if not validate_season_episode(season, episode, ctx.bounds):
            return None
        return SeasonEpisode(season, episode)

    def _merge(self, streams: list[NormalizedStream], ctx: _RunContext) -> AggregationResult:
        buckets = build_episode_buckets(dedupe_by_hash(streams), ctx.ref.title)
        return AggregationResult(
            content_id=ctx.ref.id,
            title=ctx.ref.title,
            media_kind=self.media_kind,
            seasons=summarize_seasons(buckets, ctx.seasons),
            episodes=buckets,
        )
