"""Application entrypoint."""

import asyncio
import logging

from feedpoller.adapters.driven.config.settings import Settings, load_settings
from feedpoller.adapters.driven.http.client import HttpClient
from feedpoller.adapters.driven.logging.logging_config import configure_logs
from feedpoller.adapters.driven.metrics.fetch_metrics import Metrics
from feedpoller.adapters.driven.sink.stdout import JsonLinesSink
from feedpoller.adapters.driving.signals import wait_for_stop_signal
from feedpoller.core.service import ApiService
from feedpoller.ports.settings import SettingsPort

__all__ = ["main", "build_settings_port"]

logger = logging.getLogger(__name__)

# Seconds in-flight requests may take to finish after a stop signal
SHUTDOWN_GRACE_SEC = 10


def build_settings_port(config: Settings) -> SettingsPort:
    """Wrap loaded configuration into the port the core depends on."""
    return SettingsPort(
        tick_interval_ms=config.tick_interval_ms,
        failure_threshold=config.failure_threshold,
        reset_failures_on_success=config.reset_failures_on_success,
        start_time=config.start_time,
        components=config.components,
        display_settings=config.display_settings,
    )


async def main() -> None:
    """Start the feed poller service.

    Startup sequence:
    1. Configure logging.
    2. Load and validate configuration.
    3. Start the API service scheduler.
    4. On SIGTERM/SIGINT stop scheduling and drain in-flight requests.
    """
    configure_logs()
    logger.info("Starting feed poller service...")

    try:
        config = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(
            "Configuration error: %s\n"
            "Hint: check ENDPOINTS_FILE_PATH, COMPONENTS_FILE_PATH and that "
            "both files exist and are valid JSON.",
            exc,
        )
        return

    settings_port = build_settings_port(config)
    sink = JsonLinesSink()
    http_client = HttpClient(
        metrics=Metrics(),
        cors_proxy=config.cors_proxy_url,
        timeout_sec=config.http_timeout_sec,
    )

    async with http_client as http:
        service = ApiService(config.endpoints, sink, http, settings_port)
        if not settings_port.components:
            # Without components nothing is referenced; poll every key.
            service.use_all_apis()

        stop = wait_for_stop_signal()
        try:
            service.start()
            await stop.wait()
        except Exception as e:
            logger.error(f"Unhandled exception in poller: {e}", exc_info=True)
        finally:
            stopped_at = service.stop()
            logger.info(f"Waiting for {service.executor.in_flight} in-flight requests...")
            try:
                await asyncio.wait_for(service.wait_idle(), timeout=SHUTDOWN_GRACE_SEC)
            except asyncio.TimeoutError:
                logger.warning("In-flight requests did not finish in time, closing session")

        logger.info(f"Feed poller stopped at second {stopped_at}.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutdown requested by user (Ctrl+C).")
