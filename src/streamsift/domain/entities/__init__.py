from .errors import ConfigError, FetchError, FetchErrorKind, StreamSiftError
from .streams import (
    QUALITY_TIERS,
    UNKNOWN_QUALITY,
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
    quality_tier,
    result_cache_key,
)

__all__ = [
    "QUALITY_TIERS",
    "UNKNOWN_QUALITY",
    "AggregationResult",
    "AggregationState",
    "ConfigError",
    "ContentRef",
    "EndpointTiers",
    "EpisodeBucket",
    "FetchError",
    "FetchErrorKind",
    "MediaKind",
    "NormalizedStream",
    "RawCandidate",
    "SeasonEpisode",
    "SeasonInfo",
    "SeasonSummary",
    "SourceFamily",
    "StreamSiftError",
    "Tier",
    "TitleInfo",
    "quality_tier",
    "result_cache_key",
]
