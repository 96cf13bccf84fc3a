"""Metrics port definition (interface and DTO)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

__all__ = ["FetchAttemptDto", "MetricsPort"]


@dataclass(slots=True, frozen=True)
class FetchAttemptDto:
    """Immutable snapshot of a single fetch attempt.

    Attributes:
        scheduled_at_sec: Monotonic seconds of the tick that fired the fetch.
        fired_at_sec: Monotonic seconds when the request left the process.
        finished_at_sec: Monotonic seconds when the body was read or failed.
        is_failed: True if the attempt raised or returned an HTTP error.
        status_code: HTTP status code when a response arrived; None otherwise.
    """

    scheduled_at_sec: float
    fired_at_sec: float
    finished_at_sec: float
    is_failed: bool = False
    status_code: int | None = None


class MetricsPort(Protocol):
    """Interface for recording fetch metrics.

    Implementations must be async-safe and non-blocking.
    """

    def update(self, attempt: FetchAttemptDto, /) -> None:
        """Record a finished fetch attempt.

        Args:
            attempt: The attempt to record.
        """
        ...

    def __str__(self) -> str:
        """Return concise textual summary for humans."""
        ...
