"""
Metrics Collection for the Legal Advisor

Tracks pipeline turns, latency, embedding cache efficiency, and errors.
Exposed over HTTP at /api/v1/metrics.
"""

import time
import logging
import threading
from dataclasses import dataclass, field
from collections import defaultdict
from typing import Optional
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)


@dataclass
class TurnMetrics:
    """Metrics for a single pipeline turn (one streamed answer or contract)."""
    turn_id: str
    pipeline: str
    query_text: str
    start_time: float
    end_time: float = 0
    latency_ms: float = 0
    sources_count: int = 0
    intent: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SystemMetrics:
    """Aggregated system metrics."""
    # Turn metrics
    total_turns: int = 0
    successful_turns: int = 0
    failed_turns: int = 0

    # Latency tracking (in ms)
    total_latency_ms: float = 0
    min_latency_ms: float = float('inf')
    max_latency_ms: float = 0
    latencies: list = field(default_factory=list)

    # Embedding cache
    cache_hits: int = 0
    cache_misses: int = 0

    # Retrieval
    retrieval_calls: int = 0
    empty_retrievals: int = 0

    # Error tracking
    errors_by_type: dict = field(default_factory=lambda: defaultdict(int))

    # Breakdown
    turns_by_pipeline: dict = field(default_factory=lambda: defaultdict(int))
    turns_by_intent: dict = field(default_factory=lambda: defaultdict(int))

    @property
    def avg_latency_ms(self) -> float:
        if self.total_turns == 0:
            return 0
        return self.total_latency_ms / self.total_turns

    @property
    def p95_latency_ms(self) -> float:
        """Calculate 95th percentile latency."""
        if not self.latencies:
            return 0
        sorted_latencies = sorted(self.latencies)
        index = int(len(sorted_latencies) * 0.95)
        return sorted_latencies[min(index, len(sorted_latencies) - 1)]

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0
        return self.cache_hits / total

    @property
    def error_rate(self) -> float:
        if self.total_turns == 0:
            return 0
        return self.failed_turns / self.total_turns

    def to_dict(self) -> dict:
        """Convert to dictionary for display."""
        return {
            "turns": {
                "total": self.total_turns,
                "successful": self.successful_turns,
                "failed": self.failed_turns,
                "error_rate": f"{self.error_rate:.2%}",
                "by_pipeline": dict(self.turns_by_pipeline),
                "by_intent": dict(self.turns_by_intent),
            },
            "latency_ms": {
                "avg": round(self.avg_latency_ms, 2),
                "min": round(self.min_latency_ms, 2) if self.min_latency_ms != float('inf') else 0,
                "max": round(self.max_latency_ms, 2),
                "p95": round(self.p95_latency_ms, 2),
            },
            "embedding_cache": {
                "hits": self.cache_hits,
                "misses": self.cache_misses,
                "hit_rate": f"{self.cache_hit_rate:.2%}",
            },
            "retrieval": {
                "calls": self.retrieval_calls,
                "empty": self.empty_retrievals,
            },
            "errors": dict(self.errors_by_type),
        }


class MetricsCollector:
    """
    Collects and aggregates system metrics.

    Usage:
        collector = MetricsCollector()

        with collector.track_turn("advice", query) as tracker:
            ...
            tracker.set_intent("legal")
            tracker.set_sources(len(sources))

        metrics = collector.get_metrics()
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern for global metrics collection."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.metrics = SystemMetrics()
        self._turn_history: list[TurnMetrics] = []
        self._max_history = 1000  # Keep last 1000 turns
        self._start_time = datetime.now()
        # Counters are bumped from retrieval worker threads
        self._lock = threading.Lock()
        self._initialized = True

    def reset(self):
        """Reset all metrics (for testing)."""
        with self._lock:
            self.metrics = SystemMetrics()
            self._turn_history = []
            self._start_time = datetime.now()

    class TurnTracker:
        """Context manager for tracking one pipeline turn."""

        def __init__(self, collector: 'MetricsCollector', pipeline: str, query_text: str):
            self.collector = collector
            self.turn = TurnMetrics(
                turn_id=f"t_{int(time.time() * 1000)}",
                pipeline=pipeline,
                query_text=query_text[:200],  # Truncate for storage
                start_time=time.time(),
            )

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            self.turn.end_time = time.time()
            self.turn.latency_ms = (self.turn.end_time - self.turn.start_time) * 1000

            # GeneratorExit means the client went away, not a failure
            if exc_type and not issubclass(exc_type, GeneratorExit):
                self.turn.error = str(exc_val)
                self.collector.record_error(exc_type.__name__)

            self.collector._record_turn(self.turn)
            return False  # Don't suppress exceptions

        def set_intent(self, intent: str):
            self.turn.intent = intent

        def set_sources(self, count: int):
            self.turn.sources_count = count

        def mark_failed(self, reason: str):
            """Flag a turn that ended with an error event instead of an exception."""
            self.turn.error = reason

    def track_turn(self, pipeline: str, query_text: str) -> TurnTracker:
        """
        Create a turn tracker context manager.

        Usage:
            with collector.track_turn("contract", message) as tracker:
                ...
        """
        return self.TurnTracker(self, pipeline, query_text)

    def _record_turn(self, turn: TurnMetrics):
        with self._lock:
            self.metrics.total_turns += 1

            if turn.error:
                self.metrics.failed_turns += 1
            else:
                self.metrics.successful_turns += 1

            self.metrics.total_latency_ms += turn.latency_ms
            self.metrics.min_latency_ms = min(self.metrics.min_latency_ms, turn.latency_ms)
            self.metrics.max_latency_ms = max(self.metrics.max_latency_ms, turn.latency_ms)
            self.metrics.latencies.append(turn.latency_ms)

            # Keep latencies list bounded
            if len(self.metrics.latencies) > self._max_history:
                self.metrics.latencies = self.metrics.latencies[-self._max_history:]

            self.metrics.turns_by_pipeline[turn.pipeline] += 1
            if turn.intent:
                self.metrics.turns_by_intent[turn.intent] += 1

            self._turn_history.append(turn)
            if len(self._turn_history) > self._max_history:
                self._turn_history = self._turn_history[-self._max_history:]

    def record_error(self, error_type: str):
        """Record an error by type."""
        with self._lock:
            self.metrics.errors_by_type[error_type] += 1

    def record_cache_hit(self):
        """Record an embedding cache hit."""
        with self._lock:
            self.metrics.cache_hits += 1

    def record_cache_miss(self):
        """Record an embedding cache miss."""
        with self._lock:
            self.metrics.cache_misses += 1

    def record_retrieval(self, results_count: int):
        with self._lock:
            self.metrics.retrieval_calls += 1
            if results_count == 0:
                self.metrics.empty_retrievals += 1

    def get_metrics(self) -> SystemMetrics:
        """Get current metrics."""
        return self.metrics

    def get_metrics_dict(self) -> dict:
        """Get metrics as a dictionary."""
        return self.metrics.to_dict()

    def get_recent_turns(self, limit: int = 10) -> list[TurnMetrics]:
        """Get most recent turns."""
        return self._turn_history[-limit:]

    def get_uptime(self) -> timedelta:
        """Get system uptime."""
        return datetime.now() - self._start_time


# Global metrics collector instance
_collector = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _collector
    if _collector is None:
        _collector = MetricsCollector()
    return _collector
