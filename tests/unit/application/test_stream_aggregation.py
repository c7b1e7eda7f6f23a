"""Tests for the tiered movie/series stream aggregators."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from streamsift.application.use_cases.stream_aggregation import (
    MovieStreamAggregator,
    SeriesStreamAggregator,
    best_per_quality,
    dedupe_by_hash,
    discovered_seasons,
    distinct_qualities,
    sort_by_availability,
    summarize_seasons,
)
from streamsift.domain.entities.streams import (
    EpisodeBucket,
    MediaKind,
    NormalizedStream,
    RawCandidate,
    SeasonInfo,
    SourceFamily,
    TitleInfo,
)
from streamsift.infrastructure.cache.memory_adapter import InMemoryCacheAdapter
from streamsift.infrastructure.common.retrying_fetcher import RetryingFetcher
from streamsift.infrastructure.config.schema import AggregationConfig, EndpointsConfig
from streamsift.infrastructure.matching.trust_scorer import TrustScorer
from streamsift.infrastructure.metrics import MetricsCollector
from streamsift.infrastructure.sources.endpoint_router import EndpointRouter

_YTS = "https://yts.mx/api/v2"
_TMDB = "https://api.themoviedb.org/3"
_TORRENTIO = "https://torrentio.strem.fun"

MOVIE_DETAILS = f"{_YTS}/movie_details.json?imdb_id=tt1375666"
MOVIE_LIST = f"{_YTS}/list_movies.json?query_term=tt1375666"
MOVIE_XREF = f"{_TMDB}/movie/27205/external_ids"
MOVIE_STREAMS = f"{_TORRENTIO}/stream/movie/tt1375666.json"
MOVIE_TITLE_SEARCH = f"{_YTS}/list_movies.json?query_term=Inception"

SERIES_STREAMS = f"{_TORRENTIO}/stream/series/tt0903747.json"
SERIES_XREF = f"{_TMDB}/tv/1396/external_ids"
SERIES_FALLBACK = f"{_TORRENTIO}/providers=torrentio/stream/series/tt0903747.json"

HASH_A = "a" * 40
HASH_B = "b" * 40
HASH_C = "c" * 40
HASH_D = "d" * 40


# ---------------------------------------------------------------------------
# Fakes and builders
# ---------------------------------------------------------------------------


class _FakeFetcher:
    """FetcherPort serving canned payloads per URL."""

    def __init__(
        self,
        payloads: dict[str, Any] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.payloads = payloads or {}
        self.errors = errors or {}
        self.calls: list[str] = []

    async def fetch(
        self,
        url: str,
        *,
        headers: Any = None,
        params: Any = None,
        **kwargs: Any,
    ) -> Any | None:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        return self.payloads.get(url)


class _HangingFetcher:
    async def fetch(self, url: str, **kwargs: Any) -> Any | None:
        await asyncio.Event().wait()


def _yts_details(*torrents: dict[str, Any], year: int = 2010) -> dict[str, Any]:
    return {"data": {"movie": {"year": year, "torrents": list(torrents)}}}


def _yts_torrent(
    info_hash: str, quality: str, seeds: int, peers: int = 0
) -> dict[str, Any]:
    return {
        "hash": info_hash,
        "quality": quality,
        "type": "bluray",
        "seeds": seeds,
        "peers": peers,
        "size_bytes": 2 * 1024**3,
    }


def _streams(*entries: tuple[str, str | None, int]) -> dict[str, Any]:
    """Torrentio payload from (title, info_hash, seeders) tuples."""
    streams = []
    for title, info_hash, seeds in entries:
        stream: dict[str, Any] = {"title": f"{title}\n👤 {seeds} 💾 1.4 GB"}
        if info_hash is not None:
            stream["infoHash"] = info_hash
        streams.append(stream)
    return {"streams": streams}


def _make_movie(
    fetcher: Any,
    cache: Any,
    config: AggregationConfig,
    **kwargs: Any,
) -> MovieStreamAggregator:
    return MovieStreamAggregator(
        fetcher=fetcher,
        router=EndpointRouter(EndpointsConfig()),
        cache=cache,
        scorer=TrustScorer(),
        config=config,
        **kwargs,
    )


def _make_series(
    fetcher: Any,
    cache: Any,
    config: AggregationConfig,
    **kwargs: Any,
) -> SeriesStreamAggregator:
    return SeriesStreamAggregator(
        fetcher=fetcher,
        router=EndpointRouter(EndpointsConfig()),
        cache=cache,
        scorer=TrustScorer(),
        config=config,
        **kwargs,
    )


def _normalized(
    quality: str,
    seeds: int,
    *,
    peers: int = 0,
    info_hash: str = HASH_A,
    season: int | None = None,
    episode: int | None = None,
) -> NormalizedStream:
    return NormalizedStream(
        title="x",
        info_hash=info_hash,
        quality=quality,
        size_label="Unknown",
        magnet_uri="",
        seeds=seeds,
        peers=peers,
        season=season,
        episode=episode,
    )


def _series_metadata(seasons: list[SeasonInfo]) -> AsyncMock:
    metadata = AsyncMock()
    metadata.get_title = AsyncMock(
        return_value=TitleInfo("Breaking Bad", MediaKind.SERIES, 2008)
    )
    metadata.get_season_info = AsyncMock(return_value=seasons)
    metadata.get_external_id = AsyncMock(return_value="tt0903747")
    return metadata


# ---------------------------------------------------------------------------
# Merge helpers
# ---------------------------------------------------------------------------


class TestMergeHelpers:
    def test_best_per_quality_keeps_most_seeds(self) -> None:
        low = _normalized("1080P", 40, info_hash=HASH_A)
        high = _normalized("1080P", 90, info_hash=HASH_B)
        assert best_per_quality([low, high]) == [high]

    def test_best_per_quality_tie_keeps_first(self) -> None:
        first = _normalized("720P", 10, info_hash=HASH_A)
        second = _normalized("720P", 10, info_hash=HASH_B)
        assert best_per_quality([first, second]) == [first]

    def test_dedupe_by_hash_case_insensitive(self) -> None:
        upper = _normalized("1080P", 5, info_hash="ABC")
        lower = _normalized("1080P", 7, info_hash="abc")
        assert dedupe_by_hash([upper, lower]) == [lower]

    def test_sort_by_availability_then_quality(self) -> None:
        a = _normalized("720P", 50, peers=50)
        b = _normalized("1080P", 100)
        c = _normalized("2160P", 10)
        assert sort_by_availability([c, a, b]) == [b, a, c]

    def test_distinct_qualities_ignores_hashless(self) -> None:
        candidates = [
            RawCandidate(SourceFamily.UNKNOWN, "Movie 1080p", info_hash=HASH_A),
            RawCandidate(SourceFamily.UNKNOWN, "Movie 2160p", info_hash=None),
            RawCandidate(SourceFamily.UNKNOWN, "Movie", info_hash=HASH_B),
        ]
        assert distinct_qualities(candidates) == {"1080P", "720P"}

    def test_discovered_seasons(self) -> None:
        candidates = [
            RawCandidate(SourceFamily.UNKNOWN, "Show.S01E01"),
            RawCandidate(SourceFamily.UNKNOWN, "Show.S03E02"),
            RawCandidate(SourceFamily.UNKNOWN, "Show Complete"),
        ]
        assert discovered_seasons(candidates) == {1, 3}

    def test_summarize_without_season_info(self) -> None:
        buckets = [
            EpisodeBucket(season=2, episode=1, title="t"),
            EpisodeBucket(season=1, episode=1, title="t"),
            EpisodeBucket(season=1, episode=2, title="t"),
        ]
        summaries = summarize_seasons(buckets, [])
        rows = [(s.season, s.available_episode_count, s.episode_count) for s in summaries]
        assert rows == [
            (1, 2, 0),
            (2, 1, 0),
        ]
        assert summaries[0].name == "Season 1"

    def test_summarize_with_season_info_skips_unavailable(self) -> None:
        buckets = [EpisodeBucket(season=2, episode=3, title="t")]
        info = [
            SeasonInfo(0, 5, "Specials"),
            SeasonInfo(1, 7, "Season 1"),
            SeasonInfo(2, 13, "Season 2"),
        ]
        [summary] = summarize_seasons(buckets, info)
        assert summary.season == 2
        assert summary.episode_count == 13
        assert summary.available_episode_count == 1


# ---------------------------------------------------------------------------
# Movies
# ---------------------------------------------------------------------------


class TestMovieAggregation:
    async def test_one_stream_per_quality_ordered_by_availability(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                MOVIE_DETAILS: _yts_details(
                    _yts_torrent(HASH_B, "720p", 50, 5),
                    _yts_torrent(HASH_A, "1080p", 800, 10),
                )
            }
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie(
            "27205", "Inception", year=2010, external_id="tt1375666"
        )

        assert result is not None
        assert result.media_kind == MediaKind.MOVIE
        assert [(s.quality, s.seeds) for s in result.torrents] == [
            ("1080P", 800),
            ("720P", 50),
        ]
        best = result.torrents[0]
        assert best.title == "Inception 2010 1080p BLURAY"
        assert best.magnet_uri.startswith(f"magnet:?xt=urn:btih:{HASH_A}&dn=")
        assert best.size_label == "2 GB"
        assert best.source_tag == SourceFamily.QUALITY_INDEX
        assert result.seasons == ()
        assert result.episodes == ()

    async def test_fallback_runs_below_min_distinct_qualities(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {MOVIE_DETAILS: _yts_details(_yts_torrent(HASH_A, "1080p", 800))}
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        await aggregator.aggregate_movie("27205", "Inception", external_id="tt1375666")

        assert MOVIE_TITLE_SEARCH in fetcher.calls
        # Fetched in the secondary tier, not again by the fallback.
        assert fetcher.calls.count(MOVIE_STREAMS) == 1

    async def test_fallback_skipped_with_enough_qualities(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                MOVIE_DETAILS: _yts_details(
                    _yts_torrent(HASH_A, "2160p", 100),
                    _yts_torrent(HASH_B, "1080p", 200),
                    _yts_torrent(HASH_C, "720p", 300),
                )
            }
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie(
            "27205", "Inception", external_id="tt1375666"
        )

        assert result is not None
        assert len(result.torrents) == 3
        assert MOVIE_TITLE_SEARCH not in fetcher.calls
        # Primary and secondary always run; the known id stands in for the
        # cross-reference lookup.
        assert fetcher.calls == [MOVIE_DETAILS, MOVIE_LIST, MOVIE_STREAMS]

    async def test_same_hash_from_two_sources_deduplicated(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                MOVIE_DETAILS: _yts_details(_yts_torrent(HASH_A, "1080p", 100)),
                MOVIE_LIST: {
                    "data": {
                        "movies": [{"torrents": [_yts_torrent(HASH_A, "1080p", 150)]}]
                    }
                },
            }
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie(
            "27205", "Inception", external_id="tt1375666"
        )

        assert result is not None
        assert [s.seeds for s in result.torrents] == [150]

    async def test_candidates_without_hash_or_matching_title_dropped(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                MOVIE_STREAMS: _streams(
                    ("Inception.2010.2160p.WEB", None, 500),
                    ("Inception.2010.1080p.WEB", "not a hash!", 400),
                    ("Some.Other.Film.2010.720p", HASH_C, 300),
                    ("Inception.2010.480p.DVDRip", HASH_D, 5),
                )
            }
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie(
            "27205", "Inception", external_id="tt1375666"
        )

        assert result is not None
        assert [s.info_hash for s in result.torrents] == [HASH_D]
        assert all(s.magnet_uri for s in result.torrents)

    async def test_trust_scores_within_range(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                MOVIE_DETAILS: _yts_details(
                    _yts_torrent(HASH_A, "2160p", 5000, 900),
                    _yts_torrent(HASH_B, "720p", 1),
                ),
                MOVIE_STREAMS: _streams(
                    ("Inception.2010.1080p.BluRay.DTS-RARBG", HASH_C, 2000)
                ),
            }
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie(
            "27205", "Inception", year=2010, external_id="tt1375666"
        )

        assert result is not None
        assert len(result.torrents) == 3
        assert all(0 <= s.trust_score <= 100 for s in result.torrents)
        assert result.ranked_by_trust().torrents[0].trust_score == max(
            s.trust_score for s in result.torrents
        )

    async def test_cross_reference_follow_up(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                MOVIE_XREF: {"id": 27205, "imdb_id": "tt1375666"},
                MOVIE_STREAMS: _streams(
                    ("Inception.2010.2160p.WEB", HASH_A, 10),
                    ("Inception.2010.1080p.WEB", HASH_B, 30),
                    ("Inception.2010.720p.WEB", HASH_C, 20),
                ),
            }
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie("27205", "Inception")

        assert result is not None
        assert [s.quality for s in result.torrents] == ["1080P", "720P", "2160P"]
        assert MOVIE_DETAILS not in fetcher.calls
        # Three qualities found: no fallback.
        assert MOVIE_TITLE_SEARCH not in fetcher.calls

    async def test_title_search_hit_for_other_film_dropped(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        other_film = {
            "title": "Interstellar",
            "year": 2014,
            "torrents": [_yts_torrent(HASH_A, "1080p", 40)],
        }
        fetcher = _FakeFetcher(
            {MOVIE_TITLE_SEARCH: {"data": {"movies": [other_film]}}}
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie("27205", "Inception", year=2010)

        assert MOVIE_TITLE_SEARCH in fetcher.calls
        assert result is not None
        assert result.is_empty

    async def test_metadata_resolves_external_id(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        metadata = AsyncMock()
        metadata.get_external_id = AsyncMock(return_value="tt1375666")
        metadata.get_title = AsyncMock(
            return_value=TitleInfo("Inception", MediaKind.MOVIE, 2010)
        )
        fetcher = _FakeFetcher()
        aggregator = _make_movie(
            fetcher, memory_cache, aggregation_config, metadata=metadata
        )

        await aggregator.aggregate_movie("27205", "Inception")

        metadata.get_external_id.assert_awaited_once_with("27205", MediaKind.MOVIE)
        assert MOVIE_DETAILS in fetcher.calls
        # Resolved id is not looked up a second time.
        assert MOVIE_XREF not in fetcher.calls
        assert MOVIE_STREAMS in fetcher.calls

    async def test_metadata_failure_degrades(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        metadata = AsyncMock()
        metadata.get_external_id = AsyncMock(side_effect=RuntimeError("tmdb down"))
        metadata.get_title = AsyncMock(side_effect=RuntimeError("tmdb down"))
        fetcher = _FakeFetcher()
        aggregator = _make_movie(
            fetcher, memory_cache, aggregation_config, metadata=metadata
        )

        result = await aggregator.aggregate_movie("27205", "Inception")

        assert result is not None
        assert result.is_empty
        assert MOVIE_XREF in fetcher.calls

    async def test_source_exception_isolated(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {MOVIE_DETAILS: _yts_details(_yts_torrent(HASH_A, "1080p", 10))},
            errors={MOVIE_LIST: RuntimeError("boom")},
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_movie(
            "27205", "Inception", external_id="tt1375666"
        )

        assert result is not None
        assert len(result.torrents) == 1

    @pytest.mark.parametrize(
        ("content_id", "title"),
        [("27205", ""), ("27205", "  "), ("", "Inception")],
    )
    async def test_missing_input_returns_none(
        self,
        content_id: str,
        title: str,
        mock_cache: AsyncMock,
        mock_fetcher: AsyncMock,
        aggregation_config: AggregationConfig,
    ) -> None:
        aggregator = _make_movie(mock_fetcher, mock_cache, aggregation_config)
        assert await aggregator.aggregate_movie(content_id, title) is None
        mock_fetcher.fetch.assert_not_awaited()
        mock_cache.get.assert_not_awaited()


# ---------------------------------------------------------------------------
# Caching, failures, deadline
# ---------------------------------------------------------------------------


class TestCachingAndFailures:
    async def test_second_call_within_ttl_served_from_cache(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {MOVIE_DETAILS: _yts_details(_yts_torrent(HASH_A, "1080p", 10))}
        )
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        first = await aggregator.aggregate_movie(
            "27205", "Inception", external_id="tt1375666"
        )
        calls = len(fetcher.calls)
        second = await aggregator.aggregate_movie(
            "27205", "Inception", external_id="tt1375666"
        )

        assert second is first
        assert len(fetcher.calls) == calls
        assert await memory_cache.get("movie-27205") is first

    async def test_expired_entry_refetched(
        self,
        memory_cache: InMemoryCacheAdapter,
        fake_clock: Any,
        aggregation_config: AggregationConfig,
    ) -> None:
        fetcher = _FakeFetcher()
        aggregator = _make_movie(fetcher, memory_cache, aggregation_config)

        await aggregator.aggregate_movie("27205", "Inception")
        calls = len(fetcher.calls)
        fake_clock.advance(1800)
        await aggregator.aggregate_movie("27205", "Inception")

        assert len(fetcher.calls) == 2 * calls

    async def test_all_endpoints_failing_yields_cached_empty_result(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        with (
            respx.mock(assert_all_called=False) as mock,
            patch(
                "streamsift.infrastructure.common.retrying_fetcher.asyncio.sleep",
                new_callable=AsyncMock,
            ),
        ):
            route = mock.route().mock(return_value=httpx.Response(500))
            async with httpx.AsyncClient() as client:
                fetcher = RetryingFetcher(client, max_retries=1, initial_delay=0.01)
                aggregator = _make_movie(fetcher, memory_cache, aggregation_config)
                result = await aggregator.aggregate_movie(
                    "27205", "Inception", external_id="tt1375666"
                )

        assert result is not None
        assert result.is_empty
        # primary x2, secondary x1, fallback x1 new URL; two attempts each
        assert route.call_count == 8
        assert await memory_cache.get("movie-27205") is result

    async def test_deadline_returns_uncached_empty_result(
        self, memory_cache: InMemoryCacheAdapter
    ) -> None:
        config = AggregationConfig(tier_pacing_seconds=0, deadline_seconds=0.05)
        metrics = MetricsCollector()
        aggregator = _make_movie(
            _HangingFetcher(), memory_cache, config, metrics=metrics
        )

        result = await aggregator.aggregate_movie(
            "27205", "Inception", external_id="tt1375666"
        )

        assert result is not None
        assert result.is_empty
        assert result.content_id == "27205"
        assert await memory_cache.get("movie-27205") is None
        snap = metrics.snapshot()["aggregations"]["movie"]
        assert snap["deadline_exceeded"] == 1

    async def test_tier_pacing_between_tiers(
        self, memory_cache: InMemoryCacheAdapter
    ) -> None:
        config = AggregationConfig(tier_pacing_seconds=1.5)
        aggregator = _make_movie(_FakeFetcher(), memory_cache, config)

        with patch(
            "streamsift.application.use_cases.stream_aggregation.asyncio.sleep",
            new_callable=AsyncMock,
        ) as sleep:
            await aggregator.aggregate_movie("27205", "Inception", external_id="tt1")

        # primary -> secondary, secondary -> fallback
        assert [c.args[0] for c in sleep.await_args_list] == [1.5, 1.5]

    async def test_state_transitions_logged(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        aggregator = _make_movie(_FakeFetcher(), memory_cache, aggregation_config)

        with capture_logs() as logs:
            await aggregator.aggregate_movie("27205", "Inception", external_id="tt1")

        states = [e["state"] for e in logs if e["event"] == "aggregation_state"]
        assert states == [
            "fetching_primary",
            "fetching_secondary",
            "fetching_fallback",
            "merging",
            "cached",
        ]

    async def test_metrics_recorded(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        metrics = MetricsCollector()
        fetcher = _FakeFetcher(
            {MOVIE_DETAILS: _yts_details(_yts_torrent(HASH_A, "1080p", 10))}
        )
        aggregator = _make_movie(
            fetcher, memory_cache, aggregation_config, metrics=metrics
        )

        await aggregator.aggregate_movie("27205", "Inception", external_id="tt1375666")
        await aggregator.aggregate_movie("27205", "Inception", external_id="tt1375666")

        snap = metrics.snapshot()
        assert snap["aggregations"]["movie"]["runs"] == 2
        assert snap["aggregations"]["movie"]["cache_hits"] == 1
        assert snap["aggregations"]["movie"]["fallback_runs"] == 1
        quality_index = snap["sources"]["quality_index"]
        assert quality_index["successes"] == 1
        assert quality_index["total_candidates"] == 1


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------


class TestSeriesAggregation:
    async def test_duplicate_quality_keeps_most_seeded(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                SERIES_STREAMS: _streams(
                    ("Breaking.Bad.S01E01.1080p.WEB", HASH_A, 40),
                    ("Breaking.Bad.S01E01.1080p.BluRay", HASH_B, 90),
                    ("Breaking.Bad.S01E01.720p.HDTV", HASH_C, 10),
                    ("Breaking.Bad.S01E02.720p.HDTV", HASH_D, 12),
                )
            }
        )
        aggregator = _make_series(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_series(
            "1396", "Breaking Bad", external_id="tt0903747"
        )

        assert result is not None
        assert result.media_kind == MediaKind.SERIES
        assert result.torrents == ()
        assert [(b.season, b.episode) for b in result.episodes] == [(1, 1), (1, 2)]
        first = result.episodes[0]
        assert first.title == "Breaking Bad S01E01"
        assert [(s.quality, s.seeds) for s in first.torrents] == [
            ("1080P", 90),
            ("720P", 10),
        ]
        assert first.best is not None
        assert first.best.info_hash == HASH_B
        assert first.best.season == 1
        assert first.best.episode == 1
        [season] = result.seasons
        assert season.season == 1
        assert season.available_episode_count == 2
        assert await memory_cache.get("series-1396") is result

    async def test_no_metadata_never_falls_back(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher()
        aggregator = _make_series(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_series(
            "1396", "Breaking Bad", external_id="tt0903747"
        )

        assert result is not None
        assert result.is_empty
        assert SERIES_FALLBACK not in fetcher.calls
        assert SERIES_XREF not in fetcher.calls
        assert fetcher.calls == [SERIES_STREAMS]

    async def test_fallback_until_expected_seasons_found(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        metadata = _series_metadata(
            [
                SeasonInfo(0, 5, "Specials"),
                SeasonInfo(1, 7, "Season 1"),
                SeasonInfo(2, 13, "Season 2"),
            ]
        )
        fetcher = _FakeFetcher(
            {
                SERIES_STREAMS: _streams(
                    ("Breaking.Bad.S01E01.1080p", HASH_A, 50),
                    ("Breaking.Bad.S01E09.1080p", HASH_B, 50),
                ),
                SERIES_FALLBACK: _streams(("Breaking.Bad.S02E01.720p", HASH_C, 20)),
            }
        )
        aggregator = _make_series(
            fetcher, memory_cache, aggregation_config, metadata=metadata
        )

        result = await aggregator.aggregate_series("1396", "Breaking Bad")

        assert result is not None
        assert SERIES_FALLBACK in fetcher.calls
        metadata.get_external_id.assert_awaited_once_with("1396", MediaKind.SERIES)
        # S01E09 exceeds the 7 known episodes of season 1.
        assert [(b.season, b.episode) for b in result.episodes] == [(1, 1), (2, 1)]
        rows = [
            (s.season, s.episode_count, s.available_episode_count, s.name)
            for s in result.seasons
        ]
        assert rows == [
            (1, 7, 1, "Season 1"),
            (2, 13, 1, "Season 2"),
        ]

    async def test_fallback_skipped_when_all_seasons_present(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        metadata = _series_metadata([SeasonInfo(1, 7, "Season 1")])
        fetcher = _FakeFetcher(
            {SERIES_STREAMS: _streams(("Breaking.Bad.S01E01.1080p", HASH_A, 50))}
        )
        aggregator = _make_series(
            fetcher, memory_cache, aggregation_config, metadata=metadata
        )

        await aggregator.aggregate_series("1396", "Breaking Bad")

        assert SERIES_FALLBACK not in fetcher.calls

    async def test_unlocatable_episodes_dropped(
        self, memory_cache: InMemoryCacheAdapter, aggregation_config: AggregationConfig
    ) -> None:
        fetcher = _FakeFetcher(
            {
                SERIES_STREAMS: _streams(
                    ("Breaking.Bad.Complete.Series.1080p", HASH_A, 500),
                    ("Breaking.Bad.S01.1080p", HASH_B, 400),
                    ("Breaking.Bad.S01E03.1080p", HASH_C, 5),
                )
            }
        )
        aggregator = _make_series(fetcher, memory_cache, aggregation_config)

        result = await aggregator.aggregate_series(
            "1396", "Breaking Bad", external_id="tt0903747"
        )

        assert result is not None
        assert [s.info_hash for s in result.all_streams()] == [HASH_C]

    async def test_missing_title_returns_none(
        self,
        mock_cache: AsyncMock,
        mock_fetcher: AsyncMock,
        aggregation_config: AggregationConfig,
    ) -> None:
        aggregator = _make_series(mock_fetcher, mock_cache, aggregation_config)
        assert await aggregator.aggregate_series("1396", "") is None
        mock_fetcher.fetch.assert_not_awaited()
