"""Upstream index sources: endpoint routing and response adapters."""

from .adapters import (
    ADAPTERS,
    adapt_aggregated_stream,
    adapt_cross_reference,
    adapt_quality_index,
)
from .endpoint_router import EndpointRouter

__all__ = [
    "ADAPTERS",
    "EndpointRouter",
    "adapt_aggregated_stream",
    "adapt_cross_reference",
    "adapt_quality_index",
]
