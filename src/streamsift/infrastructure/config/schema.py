"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from streamsift.domain.entities.streams import MediaKind, SourceFamily
from streamsift.infrastructure.matching.magnet import DEFAULT_TRACKERS

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

_YTS = "https://yts.mx/api/v2"
_TMDB = "https://api.themoviedb.org/3"
_TORRENTIO = "https://torrentio.strem.fun"


class FetchConfig(BaseModel):
    """Retry policy for upstream JSON requests."""

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt.")
    initial_delay_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay before backoff growth is applied.",
    )
    attempt_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Upper bound for a single HTTP attempt.",
    )
    max_backoff_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Ceiling for any single retry sleep.",
    )


class AggregationConfig(BaseModel):
    """Tiered fan-out behaviour of the stream aggregators."""

    tier_pacing_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Pause between sequential tiers (rate-limit courtesy).",
    )
    deadline_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Hard limit for one aggregation run.",
    )
    min_distinct_qualities: int = Field(
        default=3,
        ge=1,
        description="Movie fallback tier runs below this many distinct qualities.",
    )
    max_concurrent_fetches: int = Field(
        default=8,
        ge=1,
        description="Max parallel requests within one tier.",
    )
    title_match_threshold: int = Field(
        default=90,
        ge=0,
        le=100,
        description="Minimum fuzzy partial-ratio for a title match.",
    )


class CacheConfig(BaseModel):
    """In-memory result cache."""

    ttl_seconds: int = Field(
        default=1800,
        ge=0,
        description="Lifetime of cached aggregation results (seconds).",
    )
    metadata_ttl_seconds: int = Field(
        default=86_400,
        ge=0,
        description="Lifetime of cached metadata-provider responses (seconds).",
    )
    max_entries: int = Field(
        default=100_000,
        ge=1,
        description="Entries kept before least-recently-used eviction.",
    )


class EndpointTemplates(BaseModel):
    """URL templates per tier. Tokens: {id}, {external_id}, {title}."""

    primary: list[str] = Field(default_factory=list)
    secondary: list[str] = Field(default_factory=list)
    fallback: list[str] = Field(default_factory=list)


def _default_movie_templates() -> EndpointTemplates:
    return EndpointTemplates(
        primary=[
            f"{_YTS}/movie_details.json?imdb_id={{external_id}}",
            f"{_YTS}/list_movies.json?query_term={{external_id}}",
        ],
        secondary=[f"{_TMDB}/movie/{{id}}/external_ids"],
        fallback=[
            f"{_TORRENTIO}/stream/movie/{{external_id}}.json",
            f"{_YTS}/list_movies.json?query_term={{title}}",
        ],
    )


def _default_series_templates() -> EndpointTemplates:
    return EndpointTemplates(
        primary=[f"{_TORRENTIO}/stream/series/{{external_id}}.json"],
        secondary=[f"{_TMDB}/tv/{{id}}/external_ids"],
        fallback=[
            f"{_TORRENTIO}/providers=torrentio/stream/series/{{external_id}}.json",
        ],
    )


class EndpointsConfig(BaseModel):
    """Upstream endpoints, source-family markers and request origins."""

    movie: EndpointTemplates = Field(default_factory=_default_movie_templates)
    series: EndpointTemplates = Field(default_factory=_default_series_templates)
    follow_up: dict[MediaKind, str] = Field(
        default_factory=lambda: {
            MediaKind.MOVIE: f"{_TORRENTIO}/stream/movie/{{imdb_id}}.json",
            MediaKind.SERIES: f"{_TORRENTIO}/stream/series/{{imdb_id}}.json",
        },
        description="Stream URL fetched once a cross-reference yields an IMDb id.",
    )
    family_markers: dict[str, SourceFamily] = Field(
        default_factory=lambda: {
            "external_ids": SourceFamily.CROSS_REFERENCE,
            "yts": SourceFamily.QUALITY_INDEX,
            "torrentio": SourceFamily.AGGREGATED_STREAM,
        },
        description="URL substring -> source family; first match wins.",
    )
    origins: dict[SourceFamily, str] = Field(
        default_factory=lambda: {
            SourceFamily.QUALITY_INDEX: "https://yts.mx",
            SourceFamily.AGGREGATED_STREAM: _TORRENTIO,
        },
        description="Origin/Referer sent to sources that check them.",
    )


class AppConfig(BaseModel):
    """Final validated application configuration."""

    # General
    app_name: str = Field(default="streamsift", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether the HTTP client follows redirects.",
    )
    http_user_agent: str = Field(
        default="StreamSift/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)

    trackers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRACKERS),
        description="Announce URLs appended to every magnet link.",
    )

    tmdb_api_key: str | None = Field(
        default=None,
        description="TMDB API key for title, season and external-id lookups.",
    )

    @field_validator("trackers")
    @classmethod
    def _validate_trackers(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t and t.strip()]

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """Dump configuration in the sectioned shape used by config.yaml."""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "fetch": self.fetch.model_dump(),
            "aggregation": self.aggregation.model_dump(),
            "cache": self.cache.model_dump(),
            "endpoints": self.endpoints.model_dump(mode="json"),
            "trackers": list(self.trackers),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py creates EnvOverrides() to read STREAMSIFT_* variables, keeps
    only the values that were set, merges them over YAML/defaults and then
    validates AppConfig.

    Supported env var examples (flat, explicit):
    - STREAMSIFT_LOG_LEVEL
    - STREAMSIFT_FETCH_MAX_RETRIES
    - STREAMSIFT_AGGREGATION_DEADLINE_SECONDS
    - STREAMSIFT_TMDB_API_KEY
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAMSIFT_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    fetch_max_retries: Optional[int] = None
    fetch_initial_delay_seconds: Optional[float] = None
    fetch_attempt_timeout_seconds: Optional[float] = None
    fetch_max_backoff_seconds: Optional[float] = None

    aggregation_tier_pacing_seconds: Optional[float] = None
    aggregation_deadline_seconds: Optional[float] = None
    aggregation_min_distinct_qualities: Optional[int] = None
    aggregation_max_concurrent_fetches: Optional[int] = None

    cache_ttl_seconds: Optional[int] = None
    cache_max_entries: Optional[int] = None

    tmdb_api_key: Optional[str] = None

    def to_update_dict(self) -> dict[str, Any]:
        """Return only values that were actually provided (non-None), for merging."""
        return self.model_dump(exclude_none=True)
