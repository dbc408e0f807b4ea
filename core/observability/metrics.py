"""
Metrics Collection for the Shipment Pipeline

Collects and exposes in-process metrics for:
- Searches served (cache hits / misses, upstream query failures)
- Detail fetches (records read, fetch errors, corrupted and recovered records)
- Enrichment misses
- Stage timings (average, p95)

Metrics live in memory for the lifetime of the process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class SearchMetrics:
    """Metrics for search requests."""
    requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    upstream_failures: int = 0


@dataclass
class FetchMetrics:
    """Metrics for per-record detail reads."""
    identifiers: int = 0
    records: int = 0
    fetch_errors: int = 0
    json_errors: int = 0
    corrupted: int = 0
    recovered: int = 0
    still_corrupted: int = 0
    enrichment_misses: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    max_samples: int = 1000
    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, stage: str, duration_ms: float):
        """Add a timing sample for a stage."""
        samples = self.by_stage[stage]
        samples.append(duration_ms)
        if len(samples) > self.max_samples:
            self.by_stage[stage] = samples[-self.max_samples:]

    def get_average(self, stage: str) -> float:
        samples = self.by_stage.get(stage, [])
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, [])
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the shipment pipeline.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_search(cache_hit=False)
        metrics.record_stage_time("fetch", 1500)
    """

    _instance: Optional["MetricsCollector"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.searches = SearchMetrics()
        self.fetches = FetchMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Search Metrics
    # =========================================================================

    def record_search(self, cache_hit: bool):
        with self._lock:
            self.searches.requests += 1
            if cache_hit:
                self.searches.cache_hits += 1
            else:
                self.searches.cache_misses += 1

    def record_upstream_failure(self):
        with self._lock:
            self.searches.upstream_failures += 1

    # =========================================================================
    # Fetch Metrics
    # =========================================================================

    def record_fetch_summary(
        self,
        identifiers: int,
        records: int,
        fetch_errors: int = 0,
        json_errors: int = 0,
        corrupted: int = 0,
        recovered: int = 0,
    ):
        """Record the outcome of one batched fetch + retry pass."""
        with self._lock:
            self.fetches.identifiers += identifiers
            self.fetches.records += records
            self.fetches.fetch_errors += fetch_errors
            self.fetches.json_errors += json_errors
            self.fetches.corrupted += corrupted
            self.fetches.recovered += recovered
            self.fetches.still_corrupted += max(0, corrupted - recovered)

    def record_enrichment_miss(self, lookup_type: str, count: int = 1):
        with self._lock:
            self.fetches.enrichment_misses[lookup_type] += count

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_stage_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(stage, duration_ms)

    def get_timing_stats(self, stage: str) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, [])),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "searches": {
                    "requests": self.searches.requests,
                    "cache_hits": self.searches.cache_hits,
                    "cache_misses": self.searches.cache_misses,
                    "upstream_failures": self.searches.upstream_failures,
                },
                "fetches": {
                    "identifiers": self.fetches.identifiers,
                    "records": self.fetches.records,
                    "fetch_errors": self.fetches.fetch_errors,
                    "json_errors": self.fetches.json_errors,
                    "corrupted": self.fetches.corrupted,
                    "recovered": self.fetches.recovered,
                    "still_corrupted": self.fetches.still_corrupted,
                    "enrichment_misses": dict(self.fetches.enrichment_misses),
                },
                "timings": {
                    stage: {
                        "average_ms": self.timings.get_average(stage),
                        "p95_ms": self.timings.get_p95(stage),
                    }
                    for stage in self.timings.by_stage.keys()
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_stage_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_stage_time(stage, duration_ms)
