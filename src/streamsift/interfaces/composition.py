"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from streamsift.application.use_cases.stream_aggregation import (
    MovieStreamAggregator,
    SeriesStreamAggregator,
)
from streamsift.infrastructure.cache import InMemoryCacheAdapter
from streamsift.infrastructure.common.retrying_fetcher import RetryingFetcher
from streamsift.infrastructure.config.schema import AppConfig
from streamsift.infrastructure.matching.trust_scorer import TrustScorer
from streamsift.infrastructure.metrics import MetricsCollector
from streamsift.infrastructure.sources.endpoint_router import EndpointRouter
from streamsift.infrastructure.tmdb.client import HttpxTmdbClient
from streamsift.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_fetcher(config: AppConfig, http_client: httpx.AsyncClient) -> RetryingFetcher:
    return RetryingFetcher(
        http_client,
        max_retries=config.fetch.max_retries,
        initial_delay=config.fetch.initial_delay_seconds,
        attempt_timeout=config.fetch.attempt_timeout_seconds,
        max_backoff=config.fetch.max_backoff_seconds,
        default_headers={"User-Agent": config.http_user_agent},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Metrics and cache (shared by everything below)
        2. HTTP client and retrying fetcher
        3. Endpoint router and metadata provider
        4. Movie and series aggregators
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Metrics + the single shared result cache
    state.metrics = MetricsCollector()
    cache = InMemoryCacheAdapter(
        ttl_seconds=config.cache.ttl_seconds, max_entries=config.cache.max_entries
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", ttl_seconds=config.cache.ttl_seconds)

    # 2) HTTP client; retries/timeouts are owned by the fetcher
    state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.fetch.attempt_timeout_seconds),
        follow_redirects=config.http_follow_redirects,
    )
    state.fetcher = build_fetcher(config, state.http_client)
    log.info(
        "http_client_initialized",
        max_retries=config.fetch.max_retries,
        attempt_timeout=config.fetch.attempt_timeout_seconds,
    )

    # 3) Routing + metadata
    state.router = EndpointRouter(config.endpoints, tmdb_api_key=config.tmdb_api_key)
    if config.tmdb_api_key:
        state.metadata = HttpxTmdbClient(
            api_key=config.tmdb_api_key,
            fetcher=state.fetcher,
            cache=cache,
            ttl_seconds=config.cache.metadata_ttl_seconds,
        )
        log.info("tmdb_client_initialized")
    else:
        state.metadata = None
        log.warning("tmdb_api_key_missing", effect="no metadata lookups")

    # 4) Aggregators share fetcher, router, cache and scorer
    scorer = TrustScorer()
    common = dict(
        fetcher=state.fetcher,
        router=state.router,
        cache=cache,
        scorer=scorer,
        config=config.aggregation,
        metadata=state.metadata,
        trackers=config.trackers,
        metrics=state.metrics,
    )
    state.movie_aggregator = MovieStreamAggregator(**common)
    state.series_aggregator = SeriesStreamAggregator(**common)

    log.info("app_startup_complete")

    try:
        yield
    finally:
        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
