# ─────────────────────────────────────────────────────────────────────────────
# Generation Metrics — in-process counters and latency percentiles
# ─────────────────────────────────────────────────────────────────────────────
# Exposed via GET /metrics and bridged to Prometheus at /metrics/prometheus.
# Bounded: latency history uses deque(maxlen=1000), auto-evicts oldest.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any


@dataclass
class GenerationMetrics:
    """Thread-safe generation counters."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    requests_total: int = 0
    cache_hits: int = 0
    generations: int = 0
    upstream_retries: int = 0
    upstream_timeouts: int = 0
    upstream_failures: int = 0
    extraction_failures: int = 0
    rate_limited: int = 0
    monthly_limited: int = 0

    _latency_history: deque[float] = field(default_factory=lambda: deque(maxlen=1000), repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def record_request(self, latency_ms: float, cached: bool) -> None:
        """Record a request that returned a result."""
        with self._lock:
            self.requests_total += 1
            self._latency_history.append(latency_ms)
            if cached:
                self.cache_hits += 1
            else:
                self.generations += 1

    def record_rejection(self, reason: str) -> None:
        """reason: "rate" or "monthly"."""
        with self._lock:
            self.requests_total += 1
            if reason == "rate":
                self.rate_limited += 1
            else:
                self.monthly_limited += 1

    def record_attempt_failure(self, timed_out: bool) -> None:
        with self._lock:
            self.upstream_retries += 1
            if timed_out:
                self.upstream_timeouts += 1

    def record_failure(self, stage: str) -> None:
        """stage: "upstream" or "extraction"."""
        with self._lock:
            self.requests_total += 1
            if stage == "extraction":
                self.extraction_failures += 1
            else:
                self.upstream_failures += 1

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics for the /metrics endpoint."""
        with self._lock:
            latencies = sorted(self._latency_history)
            n = len(latencies)
            return {
                "requests_total": self.requests_total,
                "cache_hits": self.cache_hits,
                "cache_hit_rate": round(self.cache_hits / max(self.requests_total, 1), 3),
                "generations": self.generations,
                "upstream_retries": self.upstream_retries,
                "upstream_timeouts": self.upstream_timeouts,
                "upstream_failures": self.upstream_failures,
                "extraction_failures": self.extraction_failures,
                "rate_limited": self.rate_limited,
                "monthly_limited": self.monthly_limited,
                "latency_p50_ms": round(latencies[n // 2], 1) if n else 0,
                "latency_p95_ms": round(latencies[int(n * 0.95)], 1) if n else 0,
                "latency_mean_ms": round(sum(latencies) / n, 1) if n else 0,
                "uptime_seconds": int(time.time() - self._start_time),
            }
