"""Drift-tolerant driver of the logical one-second clock."""

import asyncio
import logging
from collections.abc import Callable

__all__ = ["Scheduler", "get_now_time", "TICK_INTERVAL_MS", "SECOND_MS"]

logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 100
SECOND_MS = 1000


def get_now_time() -> float:
    """Get current monotonic time in seconds.

    Uses event loop's monotonic clock for accurate scheduling
    without wall-clock drift.

    Returns:
        Current time in seconds (monotonic).
    """
    return asyncio.get_running_loop().time()


class Scheduler:
    """Advance a logical second counter from a fine-grained poll.

    The driver wakes every ``tick_interval_ms`` and adds the measured
    elapsed time to an accumulator. Once the accumulator reaches
    ``threshold_ms`` the tick handler runs with the current second, the
    counter advances by one and the accumulator resets to zero. Time past
    the threshold is discarded rather than carried over, so a stalled
    event loop produces one late tick instead of a burst.
    """

    def __init__(
        self,
        tick_fn: Callable[[int], None],
        *,
        tick_interval_ms: int = TICK_INTERVAL_MS,
        threshold_ms: int = SECOND_MS,
    ) -> None:
        """Initialize scheduler.

        Args:
            tick_fn: Called once per logical second with the second number.
            tick_interval_ms: Poll granularity of the driver.
            threshold_ms: Accumulated time that makes one logical second.
        """
        self.tick_fn = tick_fn
        self.tick_interval_ms = tick_interval_ms
        self.threshold_ms = threshold_ms
        self.time: int = 0
        self._elapsed_ms: float = 0.0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def elapsed_ms(self) -> float:
        """Time accumulated towards the next logical second."""
        return self._elapsed_ms

    def accumulate(self, delta_ms: float) -> bool:
        """Add elapsed time and fire the tick handler when a second is due.

        Args:
            delta_ms: Wall time since the previous poll, in milliseconds.

        Returns:
            True if a logical second elapsed.
        """
        self._elapsed_ms += delta_ms
        if self._elapsed_ms < self.threshold_ms:
            return False

        self._elapsed_ms = 0.0
        second = self.time
        try:
            self.tick_fn(second)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Tick handler failed at second {second}: {e}", exc_info=True)
        self.time = second + 1
        return True

    async def _drive(self) -> None:
        """Poll the monotonic clock until cancelled."""
        last = get_now_time()
        while True:
            await asyncio.sleep(self.tick_interval_ms / 1_000)
            now = get_now_time()
            self.accumulate((now - last) * 1_000)
            last = now

    def start(self, time: int | None = None) -> None:
        """Start the driver on the running event loop.

        Args:
            time: Logical second to start from; None resumes from the
                current counter.
        """
        if time is not None:
            if time < 0:
                raise ValueError(f"Start time must be non-negative (got: {time})")
            self.time = time
        if self.running:
            logger.debug("Scheduler already running")
            return

        self._elapsed_ms = 0.0
        self._task = asyncio.get_running_loop().create_task(self._drive())
        logger.info(f"Scheduler started at second {self.time}")

    def stop(self) -> int:
        """Stop the driver. Safe before start and when called repeatedly.

        Returns:
            Logical second at which the scheduler stopped.
        """
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info(f"Scheduler stopped at second {self.time}")
        return self.time
