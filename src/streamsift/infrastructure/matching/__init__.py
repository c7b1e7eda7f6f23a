from .magnet import DEFAULT_TRACKERS, build_magnet
from .text_heuristics import (
    SeasonBounds,
    extract_quality,
    extract_season_episode,
    extract_size_label,
    extract_year,
    format_bytes,
    is_valid_info_hash,
    normalize_title,
    size_label_for,
    title_variations,
    titles_match,
    validate_season_episode,
)
from .trust_scorer import TrustScorer

__all__ = [
    "DEFAULT_TRACKERS",
    "SeasonBounds",
    "TrustScorer",
    "build_magnet",
    "extract_quality",
    "extract_season_episode",
    "extract_size_label",
    "extract_year",
    "format_bytes",
    "is_valid_info_hash",
    "normalize_title",
    "size_label_for",
    "title_variations",
    "titles_match",
    "validate_season_episode",
]
