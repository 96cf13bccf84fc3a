"""Tests for the logical-second scheduler."""

import asyncio
from collections.abc import Callable

import pytest

from feedpoller.core.scheduler import Scheduler

__all__ = []


def make_recorder() -> tuple[list[int], Callable[[int], None]]:
    """Create a tick handler that records the seconds it sees.

    Returns:
        Tuple of (recorded seconds, handler).
    """
    seen: list[int] = []
    return seen, seen.append


def test_drift_accumulates_into_one_tick() -> None:
    """400 + 400 + 300 ms should produce exactly one tick and reset the residual."""
    seen, handler = make_recorder()
    scheduler = Scheduler(handler)

    results = [scheduler.accumulate(delta) for delta in (400, 400, 300)]

    assert results == [False, False, True]
    assert seen == [0]
    assert scheduler.time == 1
    # Residual 100 ms is discarded, not carried over
    assert scheduler.elapsed_ms == 0


def test_threshold_is_inclusive() -> None:
    """Exactly 1000 ms should advance the clock."""
    seen, handler = make_recorder()
    scheduler = Scheduler(handler)

    assert scheduler.accumulate(999.9) is False
    assert scheduler.accumulate(0.1) is True
    assert seen == [0]


def test_long_stall_produces_single_tick() -> None:
    """A stall longer than several seconds should still give one tick."""
    seen, handler = make_recorder()
    scheduler = Scheduler(handler)

    scheduler.accumulate(3_500)

    assert seen == [0]
    assert scheduler.time == 1


def test_tick_handler_errors_do_not_stop_the_clock() -> None:
    """An exception in the handler should be contained and the clock advance."""
    calls: list[int] = []

    def failing(second: int) -> None:
        calls.append(second)
        raise RuntimeError("boom")

    scheduler = Scheduler(failing)
    scheduler.accumulate(1_000)
    scheduler.accumulate(1_000)

    assert calls == [0, 1]
    assert scheduler.time == 2


def test_stop_is_idempotent_before_start() -> None:
    """stop() should be safe before start and when called repeatedly."""
    scheduler = Scheduler(lambda second: None)

    assert scheduler.stop() == 0
    assert scheduler.stop() == 0
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_driver_ticks_consecutive_seconds() -> None:
    """The running driver should call the handler with consecutive seconds."""
    seen, handler = make_recorder()
    scheduler = Scheduler(handler, tick_interval_ms=1, threshold_ms=5)

    scheduler.start(time=7)
    assert scheduler.running is True
    await asyncio.sleep(0.1)
    stopped_at = scheduler.stop()

    assert seen, "driver should have ticked at least once"
    assert seen == list(range(7, 7 + len(seen)))
    assert stopped_at == 7 + len(seen)
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_restart_resumes_from_stopped_counter() -> None:
    """start() without a time should resume from the counter at stop."""
    scheduler = Scheduler(lambda second: None)
    scheduler.start(time=42)
    scheduler.stop()

    scheduler.start()
    try:
        assert scheduler.time == 42
    finally:
        scheduler.stop()


@pytest.mark.asyncio
async def test_start_twice_keeps_single_driver() -> None:
    """A second start() should not spawn another driver task."""
    scheduler = Scheduler(lambda second: None)
    scheduler.start()
    first_task = scheduler._task

    scheduler.start()

    assert scheduler._task is first_task
    scheduler.stop()


@pytest.mark.asyncio
async def test_start_rejects_negative_time() -> None:
    """The logical counter cannot start below zero."""
    scheduler = Scheduler(lambda second: None)

    with pytest.raises(ValueError, match="non-negative"):
        scheduler.start(time=-1)
