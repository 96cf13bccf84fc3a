"""Per-request failure counters and per-endpoint backoff."""

import logging
from collections import defaultdict

__all__ = ["FailureTracker", "DEFAULT_FAILURE_THRESHOLD"]

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3


class FailureTracker:
    """In-memory failure state owned by one API service.

    Each failure adds one second of permanent extra delay to its endpoint
    and bumps the consecutive-failure count of the request key. Keys at
    or above the threshold are skipped until the state is cleared.

    Not thread-safe; mutate only from the event loop thread.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_FAILURE_THRESHOLD,
        *,
        reset_on_success: bool = False,
    ) -> None:
        """Initialize tracker.

        Args:
            threshold: Consecutive failures before a key is skipped.
            reset_on_success: Clear a key's count when it succeeds.
        """
        self.threshold = threshold
        self.reset_on_success = reset_on_success
        self._counts: dict[str, int] = defaultdict(int)
        self._extra_delay: dict[str, int] = defaultdict(int)

    def count(self, key: str) -> int:
        return self._counts.get(key, 0)

    def has_failed(self, key: str) -> bool:
        """True if the key reached the failure threshold."""
        return self.count(key) >= self.threshold

    def extra_delay(self, endpoint: str) -> int:
        return self._extra_delay.get(endpoint, 0)

    def record_failure(self, key: str, endpoint: str) -> None:
        """Count one failure for a key and back off its endpoint by a second.

        Args:
            key: Request key that failed.
            endpoint: Endpoint the key belongs to.
        """
        self._extra_delay[endpoint] += 1
        self._counts[key] += 1
        if self._counts[key] == self.threshold:
            logger.warning(
                f"{key} failed {self.threshold} times in a row, skipping it from now on"
            )

    def record_success(self, key: str) -> None:
        if self.reset_on_success and key in self._counts:
            del self._counts[key]

    def clear(self) -> None:
        """Forget every counter and extra delay."""
        self._counts.clear()
        self._extra_delay.clear()
