"""In-memory sliding-window metrics for endpoint fetches."""

from __future__ import annotations

import statistics
from collections import deque
from dataclasses import dataclass

from feedpoller.ports.metrics import FetchAttemptDto, MetricsPort

__all__ = ["Metrics", "MetricsSnapshot"]


@dataclass(slots=True, frozen=True)
class _Sample:
    jitter_ms: float
    latency_ms: float
    failed: bool
    status_code: int


@dataclass(slots=True, frozen=True)
class MetricsSnapshot:
    """Aggregates over the current window plus lifetime totals.

    Attributes:
        avg_jitter_ms: Mean delay between tick and request start.
        avg_latency_ms: Mean request duration.
        p95_latency_ms: 95th percentile request duration.
        fail_pct: Share of failed attempts in the window.
        last_status: Status of the newest attempt (0 when none arrived).
        window: Samples currently in the window.
        total: Attempts seen since start.
        total_failed: Failed attempts seen since start.
    """

    avg_jitter_ms: float
    avg_latency_ms: float
    p95_latency_ms: float
    fail_pct: float
    last_status: int
    window: int
    total: int
    total_failed: int


class Metrics(MetricsPort):
    """Lock-free fetch metrics for the event loop thread.

    Not thread-safe; create one instance per event loop.
    """

    def __init__(self, *, window_size: int = 100) -> None:
        """Initialize metrics collector.

        Args:
            window_size: Number of recent attempts to keep for statistics.
        """
        self._window: deque[_Sample] = deque(maxlen=window_size)
        self._total = 0
        self._total_failed = 0

    def update(self, attempt: FetchAttemptDto) -> None:
        """Record a finished fetch attempt."""
        self._window.append(
            _Sample(
                jitter_ms=(attempt.fired_at_sec - attempt.scheduled_at_sec) * 1_000.0,
                latency_ms=(attempt.finished_at_sec - attempt.fired_at_sec) * 1_000.0,
                failed=attempt.is_failed,
                status_code=attempt.status_code or 0,
            )
        )
        self._total += 1
        if attempt.is_failed:
            self._total_failed += 1

    def snapshot(self) -> MetricsSnapshot | None:
        """Aggregate the window, or None before the first attempt."""
        if not self._window:
            return None
        latencies = sorted(s.latency_ms for s in self._window)
        p95_index = min(len(latencies) - 1, round(0.95 * (len(latencies) - 1)))
        return MetricsSnapshot(
            avg_jitter_ms=statistics.fmean(s.jitter_ms for s in self._window),
            avg_latency_ms=statistics.fmean(latencies),
            p95_latency_ms=latencies[p95_index],
            fail_pct=100.0 * sum(s.failed for s in self._window) / len(self._window),
            last_status=self._window[-1].status_code,
            window=len(self._window),
            total=self._total,
            total_failed=self._total_failed,
        )

    def __str__(self) -> str:
        """One-line summary for logging."""
        snap = self.snapshot()
        if snap is None:
            return "Metrics: waiting for data …"
        return (
            f"jitter={snap.avg_jitter_ms:5.1f} ms | "
            f"latency={snap.avg_latency_ms:6.1f} ms (p95 {snap.p95_latency_ms:.0f}) | "
            f"status={snap.last_status:3d} | "
            f"fail={snap.fail_pct:5.1f}% | "
            f"win={snap.window}/{self._window.maxlen} | "
            f"total={snap.total} ({snap.total_failed} failed)"
        )
