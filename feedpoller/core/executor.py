"""Per-tick request dispatch for firing endpoints."""

import asyncio
import logging
import re
from collections.abc import Callable, Sequence
from datetime import date
from typing import Any

from feedpoller.core.errors import ApplicationError, TransportError
from feedpoller.core.expander import expand
from feedpoller.core.failures import FailureTracker
from feedpoller.core.scheduler import get_now_time
from feedpoller.core.transform import transform_payload
from feedpoller.ports.endpoint import EndpointDefinition, ResolvedRequest
from feedpoller.ports.sink import PayloadCallback
from feedpoller.ports.transport import FetchRequest, TransportPort

__all__ = ["RequestExecutor", "fires_at", "inject_runtime_tokens", "APPLICATION_ERROR_FIELD"]

logger = logging.getLogger(__name__)

APPLICATION_ERROR_FIELD = "error"
NOW_DATE_TOKEN = re.compile(r"\[\[\s*now\.date\s*\]\]")


def fires_at(second: int, interval: int, delay: int = 0) -> bool:
    """True if an endpoint with this interval and delay polls at ``second``.

    Python's ``%`` is non-negative for a positive interval, so seconds
    before the delay still land on the same grid.
    """
    return (second - delay) % interval == 0


def inject_runtime_tokens(url: str, today: date) -> str:
    """Replace ``[[now.date]]`` with today's ISO date."""
    return NOW_DATE_TOKEN.sub(today.isoformat(), url)


class RequestExecutor:
    """Decide, each logical second, which requests to send and send them.

    Requests run as independent asyncio tasks; ``tick`` never waits for
    them. Completions update the failure tracker and hand normalized
    payloads to the callback.
    """

    def __init__(
        self,
        definitions: Sequence[EndpointDefinition],
        callback: PayloadCallback,
        transport: TransportPort,
        failures: FailureTracker,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize executor.

        Args:
            definitions: Active endpoint definitions.
            callback: Receives (request key, normalized payload).
            transport: Executes fetches and scrapes.
            failures: Shared failure state.
            today: Date source for ``[[now.date]]`` tokens.
        """
        self.definitions = list(definitions)
        self.callback = callback
        self.transport = transport
        self.failures = failures
        self.usage: dict[str, bool] = {}
        self._today = today
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def is_firing(self, definition: EndpointDefinition, second: int) -> bool:
        """Check whether an endpoint polls at this second, including backoff."""
        if definition.offline:
            return False
        delay = definition.delay + self.failures.extra_delay(definition.name)
        return fires_at(second, definition.interval, delay)

    def should_send(self, request: ResolvedRequest) -> bool:
        """Gate a request on component usage and failure history."""
        return self.usage.get(request.key, False) and not self.failures.has_failed(request.key)

    def tick(self, second: int) -> list[ResolvedRequest]:
        """Dispatch every due request for this logical second.

        Args:
            second: Current logical second.

        Returns:
            Requests that were dispatched.
        """
        dispatched = []
        for definition in self.definitions:
            if not self.is_firing(definition, second):
                continue
            for request in expand(definition):
                if self.should_send(request):
                    self.dispatch(definition, request)
                    dispatched.append(request)
        if dispatched:
            logger.debug(f"Second {second}: dispatched {len(dispatched)} requests")
        return dispatched

    def dispatch(self, definition: EndpointDefinition, request: ResolvedRequest) -> None:
        """Fire and forget one request."""
        loop = asyncio.get_running_loop()
        fetch = FetchRequest(
            ideal_time_sec=get_now_time(),
            url=inject_runtime_tokens(request.url, self._today()),
            method=definition.method,
            body=request.body,
            headers=definition.headers,
            cors=definition.cors,
        )
        task = loop.create_task(self._run_once(definition, request, fetch))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_once(
        self, definition: EndpointDefinition, request: ResolvedRequest, fetch: FetchRequest
    ) -> None:
        """Run one request and route its outcome."""
        try:
            payload = await self.transport.fetch(fetch)
            if isinstance(payload, dict) and APPLICATION_ERROR_FIELD in payload:
                raise ApplicationError(request.key, payload[APPLICATION_ERROR_FIELD])
        except (TransportError, ApplicationError) as e:
            logger.warning(f"{request.key} failed: {e}")
            self.failures.record_failure(request.key, request.endpoint)
            return
        except Exception as e:  # noqa: BLE001
            logger.error(f"Unexpected error fetching {request.key}: {e}", exc_info=True)
            self.failures.record_failure(request.key, request.endpoint)
            return

        self.failures.record_success(request.key)
        if definition.print_:
            logger.info(f"{request.key} raw payload: {payload!r}")

        try:
            result: Any = await transform_payload(definition, payload, self.transport)
            self.callback(request.key, result)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Delivering {request.key} failed: {e}", exc_info=True)

    async def wait_idle(self) -> None:
        """Wait until every in-flight request has completed."""
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
