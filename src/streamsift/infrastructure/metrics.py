"""Zero-impact in-memory aggregation metrics.

All counters are plain Python integers manipulated inside the single-threaded
async event loop; no locks, no I/O.  ``time.perf_counter_ns()`` is used for
timing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class SourceStats:
    """Accumulated fetch statistics for one upstream source."""

    fetches: int = 0
    successes: int = 0
    failures: int = 0
    total_candidates: int = 0
    total_duration_ns: int = 0

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-serializable summary."""
        avg_ms = (
            round(self.total_duration_ns / self.fetches / 1_000_000, 1)
            if self.fetches
            else 0.0
        )
        return {
            "fetches": self.fetches,
            "successes": self.successes,
            "failures": self.failures,
            "total_candidates": self.total_candidates,
            "avg_duration_ms": avg_ms,
        }


@dataclass
class AggregationStats:
    """Outcome counters for aggregation runs of one media kind."""

    runs: int = 0
    cache_hits: int = 0
    fallback_runs: int = 0
    deadline_exceeded: int = 0
    empty_results: int = 0
    total_streams: int = 0

    def snapshot(self) -> dict[str, object]:
        return {
            "runs": self.runs,
            "cache_hits": self.cache_hits,
            "fallback_runs": self.fallback_runs,
            "deadline_exceeded": self.deadline_exceeded,
            "empty_results": self.empty_results,
            "total_streams": self.total_streams,
        }


@dataclass
class MetricsCollector:
    """Central in-memory metrics collector."""

    _sources: dict[str, SourceStats] = field(default_factory=dict)
    _aggregations: dict[str, AggregationStats] = field(default_factory=dict)
    _start_ns: int = field(default_factory=time.perf_counter_ns)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_fetch(
        self,
        source: str,
        duration_ns: int,
        candidate_count: int,
        *,
        success: bool,
    ) -> None:
        """Record one upstream fetch (keyed by source family)."""
        stats = self._sources.setdefault(source, SourceStats())
        stats.fetches += 1
        stats.total_duration_ns += duration_ns
        if success:
            stats.successes += 1
            stats.total_candidates += candidate_count
        else:
            stats.failures += 1

    def record_aggregation(
        self,
        media_kind: str,
        *,
        cache_hit: bool = False,
        fallback_used: bool = False,
        deadline_exceeded: bool = False,
        stream_count: int = 0,
    ) -> None:
        """Record the outcome of one aggregation request."""
        stats = self._aggregations.setdefault(media_kind, AggregationStats())
        stats.runs += 1
        if cache_hit:
            stats.cache_hits += 1
        if fallback_used:
            stats.fallback_runs += 1
        if deadline_exceeded:
            stats.deadline_exceeded += 1
        if stream_count == 0:
            stats.empty_results += 1
        stats.total_streams += stream_count

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-serializable snapshot of all metrics."""
        uptime_ns = time.perf_counter_ns() - self._start_ns
        return {
            "uptime_seconds": round(uptime_ns / 1_000_000_000, 1),
            "sources": {
                name: stats.snapshot() for name, stats in sorted(self._sources.items())
            },
            "aggregations": {
                kind: stats.snapshot()
                for kind, stats in sorted(self._aggregations.items())
            },
        }
