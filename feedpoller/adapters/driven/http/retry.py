"""Retry logic for transient transport errors."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import aiohttp

__all__ = ["retry", "RETRYABLE_ERRORS"]

logger = logging.getLogger(__name__)

# Transient aiohttp failures; HTTP statuses and body errors are not listed
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    aiohttp.ClientConnectorError,  # DNS lookup or TCP connect failed
    aiohttp.ClientConnectionError,  # peer dropped the connection
    aiohttp.ClientOSError,  # socket level error
    aiohttp.ServerTimeoutError,  # sock_read/sock_connect timeout
    aiohttp.ClientPayloadError,  # body truncated mid-stream
)

P = ParamSpec("P")
T = TypeVar("T")


def retry(
    times: int = 2,
    delay_sec: tuple[float, ...] = (0.2, 0.5, 1.0),
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorate an async call with backoff retry on transient errors.

    Anything outside ``retry_on`` (HTTP error statuses, parse errors) is
    raised immediately. The whole retried call counts as one attempt for
    the caller's failure tracking.

    Args:
        times: Number of attempts (1 = no retry).
        delay_sec: Delays between attempts in seconds; the last one repeats.
        retry_on: Exception types worth retrying.

    Returns:
        Decorator function.

    Example:
        @retry(times=3)
        async def read_feed(session, url):
            async with session.get(url) as resp:
                return resp.status, await resp.text()
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(times):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    if attempt == times - 1:
                        logger.debug(f"Retry exhausted after {times} attempts: {e}")
                        raise
                    await asyncio.sleep(delay_sec[min(attempt, len(delay_sec) - 1)])

            raise RuntimeError("Retry wrapper called with times < 1")

        return wrapper

    return decorator
