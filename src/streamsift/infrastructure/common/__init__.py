"""Common infrastructure utilities."""

from __future__ import annotations

from .converters import to_float, to_int, to_str
from .parsers import parse_size_to_bytes
from .retrying_fetcher import RetryingFetcher

__all__ = [
    "RetryingFetcher",
    "parse_size_to_bytes",
    "to_float",
    "to_int",
    "to_str",
]
