"""Healthcheck validator for container orchestration."""

import logging

from feedpoller.adapters.driven.config.settings import load_settings
from feedpoller.adapters.driven.logging.logging_config import configure_logs
from feedpoller.core.expander import expand_all

__all__ = ["main"]

logger = logging.getLogger(__name__)


def main() -> int:
    """Run health check for container orchestration.

    Validates:
    - Required environment variables are set.
    - Endpoint and component files exist and are valid.
    - Every endpoint expands into at least one request.

    Returns:
        0 if healthy, 1 if unhealthy.
    """
    configure_logs()

    try:
        settings = load_settings()
    except Exception as exc:
        logger.error(f"Poller healthcheck FAILED: {exc}")
        return 1

    requests = expand_all(settings.endpoints)
    expanded = {req.endpoint for req in requests.values()}
    empty = [d.name for d in settings.endpoints if d.name not in expanded]
    if empty:
        logger.warning(f"Endpoints expanding to no requests: {', '.join(empty)}")

    logger.info(f"Poller healthcheck OK ({len(requests)} request keys)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
