"""Tests for failure tracking."""

from feedpoller.core.failures import FailureTracker

__all__ = []


def test_failure_tracker_counts_and_gates() -> None:
    """A key should be gated once it reaches the threshold."""
    tracker = FailureTracker(threshold=3)

    for expected in (1, 2):
        tracker.record_failure("bus.a", "bus")
        assert tracker.count("bus.a") == expected
        assert tracker.has_failed("bus.a") is False

    tracker.record_failure("bus.a", "bus")

    assert tracker.has_failed("bus.a") is True
    assert tracker.has_failed("bus.b") is False


def test_failure_tracker_extra_delay_is_per_endpoint() -> None:
    """Every failure should add a second of delay to its endpoint."""
    tracker = FailureTracker()

    tracker.record_failure("bus.a", "bus")
    tracker.record_failure("bus.b", "bus")
    tracker.record_failure("coffee.x", "coffee")

    assert tracker.extra_delay("bus") == 2
    assert tracker.extra_delay("coffee") == 1
    assert tracker.extra_delay("other") == 0


def test_failure_tracker_success_keeps_count_by_default() -> None:
    """Success should not reset the counter unless configured to."""
    tracker = FailureTracker()
    tracker.record_failure("k", "e")

    tracker.record_success("k")

    assert tracker.count("k") == 1


def test_failure_tracker_success_resets_when_enabled() -> None:
    """reset_on_success should clear the key's counter but not the delay."""
    tracker = FailureTracker(reset_on_success=True)
    tracker.record_failure("k", "e")

    tracker.record_success("k")

    assert tracker.count("k") == 0
    assert tracker.extra_delay("e") == 1


def test_failure_tracker_clear() -> None:
    """clear() should forget counters and delays."""
    tracker = FailureTracker(threshold=1)
    tracker.record_failure("k", "e")

    tracker.clear()

    assert tracker.has_failed("k") is False
    assert tracker.extra_delay("e") == 0
