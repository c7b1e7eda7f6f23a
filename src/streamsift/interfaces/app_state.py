"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from streamsift.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from streamsift.application.use_cases.stream_aggregation import (
        MovieStreamAggregator,
        SeriesStreamAggregator,
    )
    from streamsift.domain.ports import CachePort, MetadataProviderPort
    from streamsift.infrastructure.common.retrying_fetcher import RetryingFetcher
    from streamsift.infrastructure.metrics import MetricsCollector
    from streamsift.infrastructure.sources.endpoint_router import EndpointRouter


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    fetcher: RetryingFetcher
    router: EndpointRouter

    # Metadata (optional - requires TMDB API key)
    metadata: MetadataProviderPort | None

    # Metrics (zero-impact in-memory counters)
    metrics: MetricsCollector

    # Use cases
    movie_aggregator: MovieStreamAggregator
    series_aggregator: SeriesStreamAggregator
