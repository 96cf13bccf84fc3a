"""Signal handling for graceful shutdown."""

import asyncio
import logging
import signal

__all__ = ["wait_for_stop_signal"]

logger = logging.getLogger(__name__)


def wait_for_stop_signal() -> asyncio.Event:
    """Create an event that is set on SIGTERM or SIGINT.

    On Docker/Kubernetes, SIGTERM is sent 30s before SIGKILL,
    allowing the poller to stop its scheduler and let in-flight
    requests finish.

    Returns:
        Event the entrypoint awaits before shutting down.
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_signal() -> None:
        """Signal handler that sets the stop event on SIGTERM/SIGINT."""
        logger.info("Termination signal received, initiating graceful shutdown...")
        stop.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    return stop
