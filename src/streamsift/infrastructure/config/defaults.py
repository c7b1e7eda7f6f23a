"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "streamsift",
    "environment": "dev",
    "http": {
        "follow_redirects": True,
        "user_agent": "StreamSift/0.1.0",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "fetch": {
        "max_retries": 3,
        "initial_delay_seconds": 1.0,
        "attempt_timeout_seconds": 15.0,
        "max_backoff_seconds": 30.0,
    },
    "aggregation": {
        "tier_pacing_seconds": 2.0,
        "deadline_seconds": 60.0,
        "min_distinct_qualities": 3,
        "max_concurrent_fetches": 8,
        "title_match_threshold": 90,
    },
    "cache": {
        "ttl_seconds": 1800,
        "metadata_ttl_seconds": 86_400,
        "max_entries": 100_000,
    },
}
