"""Prometheus metrics and in-memory metrics collector."""

import threading
from collections import deque
from typing import Any

from prometheus_client import Counter, Gauge, Histogram

recall_active_requests = Gauge(
    "recall_active_requests", "Number of active (in-flight) requests"
)

recall_resolutions_total = Counter(
    "recall_resolutions_total",
    "Total number of resolved questions by answer source",
    ["source"],
)

recall_resolution_duration_seconds = Histogram(
    "recall_resolution_duration_seconds",
    "Question resolution latency in seconds",
    ["source"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

recall_similarity_score = Histogram(
    "recall_similarity_score",
    "Best candidate score seen by the similarity matcher",
    ["strategy"],
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 0.95, 1.0],
)

recall_hot_cache_hits_total = Counter("recall_hot_cache_hits_total", "Total number of hot cache hits")

recall_hot_cache_misses_total = Counter(
    "recall_hot_cache_misses_total", "Total number of hot cache misses"
)

recall_provider_failures_total = Counter(
    "recall_provider_failures_total",
    "Failed calls to external providers",
    ["provider", "kind"],
)

recall_circuit_breaker_state = Gauge(
    "recall_circuit_breaker_state", "Circuit breaker state: 0=closed, 1=open", ["provider"]
)


class RecallMetrics:
    def record_resolution(self, source: str, duration: float) -> None:
        recall_resolutions_total.labels(source=source).inc()
        recall_resolution_duration_seconds.labels(source=source).observe(duration)

    def record_similarity_score(self, strategy: str, score: float) -> None:
        recall_similarity_score.labels(strategy=strategy).observe(score)

    def record_hot_cache_hit(self) -> None:
        recall_hot_cache_hits_total.inc()

    def record_hot_cache_miss(self) -> None:
        recall_hot_cache_misses_total.inc()

    def record_provider_failure(self, provider: str, kind: str) -> None:
        recall_provider_failures_total.labels(provider=provider, kind=kind).inc()

    def record_circuit_breaker(self, provider: str, state: int) -> None:
        recall_circuit_breaker_state.labels(provider=provider).set(state)

    def increment_active_requests(self) -> None:
        recall_active_requests.inc()

    def decrement_active_requests(self) -> None:
        recall_active_requests.dec()


recall_metrics = RecallMetrics()


# In-memory metrics (for /metrics JSON, reset and the rate limiter)
class MetricsCollector:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {
            "requests_total": 0,
            "hot_cache_hits": 0,
            "hot_cache_misses": 0,
            "similarity_hits": 0,
            "lexical_hits": 0,
            "generations": 0,
            "generation_failures": 0,
            "embedding_failures": 0,
            "persistence_failures": 0,
            "cache_failures": 0,
            "rate_limit_rejections": 0,
            "circuit_breaker_trips": 0,
        }
        self._gauges: dict[str, int] = {"active_requests": 0}
        self._counter_dicts: dict[str, dict[str, int]] = {
            "requests_by_status": {},
            "requests_by_endpoint": {},
        }
        self._observations: dict[str, deque[float]] = {
            "response_time_seconds": deque(maxlen=1000),
        }

    def increment(self, metric_name: str, amount: int = 1) -> None:
        with self._lock:
            if metric_name in self._counters:
                self._counters[metric_name] += amount
            elif metric_name in self._gauges:
                self._gauges[metric_name] += amount

    def decrement(self, metric_name: str, amount: int = 1) -> None:
        with self._lock:
            if metric_name in self._gauges:
                self._gauges[metric_name] -= amount

    def observe(self, metric_name: str, value: float) -> None:
        with self._lock:
            if metric_name in self._observations:
                self._observations[metric_name].append(value)

    def increment_dict(self, metric_name: str, key: str, amount: int = 1) -> None:
        with self._lock:
            if metric_name in self._counter_dicts:
                current = self._counter_dicts[metric_name].get(key, 0)
                self._counter_dicts[metric_name][key] = current + amount

    def counter(self, metric_name: str) -> int:
        with self._lock:
            return self._counters.get(metric_name, 0)

    def reset(self) -> None:
        with self._lock:
            self._counters = {k: 0 for k in self._counters}
            self._gauges = {k: 0 for k in self._gauges}
            self._counter_dicts = {k: {} for k in self._counter_dicts}
            self._observations = {k: deque(maxlen=1000) for k in self._observations}

    def get_metrics(self) -> dict[str, Any]:
        with self._lock:
            response_times = list(self._observations["response_time_seconds"])
            counters_snapshot = dict(self._counters)
            gauges_snapshot = dict(self._gauges)
            by_status = dict(self._counter_dicts["requests_by_status"])
            by_endpoint = dict(self._counter_dicts["requests_by_endpoint"])
        avg_ms = 0.0
        p50_ms = 0.0
        p95_ms = 0.0
        p99_ms = 0.0
        if response_times:
            sorted_times = sorted(response_times)
            n = len(sorted_times)
            avg_ms = round(sum(sorted_times) / n * 1000, 1)
            p50_ms = round(sorted_times[int(n * 0.5)] * 1000, 1)
            p95_ms = round(sorted_times[min(int(n * 0.95), n - 1)] * 1000, 1)
            p99_ms = round(sorted_times[min(int(n * 0.99), n - 1)] * 1000, 1)
        hot_hits = counters_snapshot["hot_cache_hits"]
        hot_misses = counters_snapshot["hot_cache_misses"]
        similar_hits = counters_snapshot["similarity_hits"] + counters_snapshot["lexical_hits"]
        generations = counters_snapshot["generations"]
        total_hot = hot_hits + hot_misses
        total_answers = hot_hits + similar_hits + generations
        hot_hit_rate = round(hot_hits / total_hot, 3) if total_hot > 0 else 0.0
        reuse_rate = (
            round((hot_hits + similar_hits) / total_answers, 3) if total_answers > 0 else 0.0
        )
        return {
            "requests": {
                "total": counters_snapshot["requests_total"],
                "by_status": by_status,
                "by_endpoint": by_endpoint,
                "active": gauges_snapshot["active_requests"],
            },
            "performance": {
                "avg_response_time_ms": avg_ms,
                "p50_response_time_ms": p50_ms,
                "p95_response_time_ms": p95_ms,
                "p99_response_time_ms": p99_ms,
            },
            "cache": {
                "hot_hits": hot_hits,
                "hot_misses": hot_misses,
                "hot_hit_rate": hot_hit_rate,
                "similarity_hits": counters_snapshot["similarity_hits"],
                "lexical_hits": counters_snapshot["lexical_hits"],
                "generations": generations,
                "reuse_rate": reuse_rate,
            },
            "failures": {
                "generation": counters_snapshot["generation_failures"],
                "embedding": counters_snapshot["embedding_failures"],
                "persistence": counters_snapshot["persistence_failures"],
                "hot_cache": counters_snapshot["cache_failures"],
                "rate_limit_rejections": counters_snapshot["rate_limit_rejections"],
                "circuit_breaker_trips": counters_snapshot["circuit_breaker_trips"],
            },
        }


metrics = MetricsCollector()


def get_metrics() -> dict[str, Any]:
    return metrics.get_metrics()
