# kiosk_dispatch/infra/metrics.py
from __future__ import annotations
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Dict
from dataclasses import dataclass, field
from kiosk_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

HISTOGRAM_WINDOW = 1000


@dataclass
class Counter:
    """Simple counter metric"""
    value: int = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount


@dataclass
class Histogram:
    """
    Latency distribution over the most recent observations.

    ``count`` is the lifetime number of observations; min/max/avg and the
    percentiles only cover the last ``HISTOGRAM_WINDOW`` values.
    """
    values: deque = field(default_factory=lambda: deque(maxlen=HISTOGRAM_WINDOW))
    total: int = 0

    def observe(self, value: float) -> None:
        self.values.append(value)
        self.total += 1

    def get_stats(self) -> dict:
        if not self.values:
            return {"count": self.total, "min": 0, "max": 0, "avg": 0, "p95": 0, "p99": 0}

        window = sorted(self.values)
        size = len(window)

        def percentile(p: float) -> float:
            return window[min(int(size * p), size - 1)]

        return {
            "count": self.total,
            "min": window[0],
            "max": window[-1],
            "avg": sum(window) / size,
            "p95": percentile(0.95),
            "p99": percentile(0.99),
        }


class MetricsCollector:
    """
    Lightweight metrics collection.
    For production, consider Prometheus client or similar.
    """

    def __init__(self):
        self._counters: Dict[str, Counter] = defaultdict(Counter)
        self._histograms: Dict[str, Histogram] = defaultdict(Histogram)
        self._lock = Lock()

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        """Increment a counter metric"""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key].inc(amount)

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        """Add a value to histogram"""
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms[key].observe(value)

    def get_metrics(self) -> dict:
        """Get all current metrics"""
        with self._lock:
            counters = {k: v.value for k, v in self._counters.items()}
            histograms = {k: v.get_stats() for k, v in self._histograms.items()}

        return {
            "counters": counters,
            "histograms": histograms,
        }

    def reset(self) -> None:
        """Reset all metrics"""
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
        logger.info("Metrics reset")

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector"""
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    """Increment a counter metric"""
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    """Record a histogram value"""
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Context manager to time operations"""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self.start_time: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            duration = time.perf_counter() - self.start_time
            observe_histogram(self.metric_name, duration, **self.labels)


class DispatchMetrics:
    """Call-dispatch metrics tracking"""

    @staticmethod
    def call_placed() -> None:
        inc_counter("calls_placed_total")

    @staticmethod
    def call_placement_failed() -> None:
        inc_counter("call_placement_failed_total")

    @staticmethod
    def call_response(accepted: bool) -> None:
        inc_counter("call_responses_total", accepted=str(accepted).lower())

    @staticmethod
    def call_conflict() -> None:
        inc_counter("call_conflicts_total")

    @staticmethod
    def broadcast_send_failed() -> None:
        inc_counter("broadcast_send_failed_total")

    @staticmethod
    def push_sent(provider: str) -> None:
        inc_counter("push_notifications_sent_total", provider=provider)

    @staticmethod
    def push_failed(provider: str) -> None:
        inc_counter("push_notifications_failed_total", provider=provider)

    @staticmethod
    def storage_read_failed(store: str) -> None:
        inc_counter("storage_read_failed_total", store=store)

    @staticmethod
    def storage_write_failed(store: str) -> None:
        inc_counter("storage_write_failed_total", store=store)

    @staticmethod
    def track_call_placement() -> Timer:
        return Timer("call_placement_seconds")
