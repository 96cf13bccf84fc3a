"""API service: schedules endpoint polling and delivers normalized data."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from feedpoller.core.executor import RequestExecutor
from feedpoller.core.expander import expand_all
from feedpoller.core.failures import FailureTracker
from feedpoller.core.scheduler import Scheduler
from feedpoller.core.usage import compute_usage
from feedpoller.ports.endpoint import EndpointDefinition, ResolvedRequest
from feedpoller.ports.settings import SettingsPort
from feedpoller.ports.sink import PayloadCallback
from feedpoller.ports.transport import TransportPort

__all__ = ["ApiService"]

logger = logging.getLogger(__name__)


def _check_unique(definitions: Sequence[EndpointDefinition]) -> list[EndpointDefinition]:
    names = [d.name for d in definitions]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate endpoint names: {', '.join(duplicates)}")
    return list(definitions)


class ApiService:
    """Poll a set of endpoints and pass their data to a callback.

    Owns all mutable polling state (usage map, failure counters, logical
    clock) for one set of endpoint definitions. Everything runs on the
    event loop thread.

    Example:
        service = ApiService(definitions, on_data, transport, settings)
        service.start()
        ...
        service.stop()
    """

    def __init__(
        self,
        definitions: Sequence[EndpointDefinition],
        callback: PayloadCallback,
        transport: TransportPort,
        settings: SettingsPort | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            definitions: Endpoint definitions to poll.
            callback: Receives (request key, normalized payload).
            transport: Executes fetches and scrapes.
            settings: Runtime settings, components and display settings.
        """
        settings = settings or SettingsPort()
        self.components: list[Mapping[str, Any]] = list(settings.components)
        self.display_settings: Mapping[str, Any] = dict(settings.display_settings)
        self.failures = FailureTracker(
            settings.failure_threshold,
            reset_on_success=settings.reset_failures_on_success,
        )
        self.executor = RequestExecutor(
            _check_unique(definitions), callback, transport, self.failures
        )
        self.scheduler = Scheduler(self.executor.tick, tick_interval_ms=settings.tick_interval_ms)
        self.scheduler.time = settings.start_time

        if self.components:
            self.update_used_apis(self.components)

    @property
    def time(self) -> int:
        """Current logical second."""
        return self.scheduler.time

    @property
    def usage(self) -> dict[str, bool]:
        return self.executor.usage

    def start(self, time: int | None = None) -> None:
        """Start scheduling requests.

        Args:
            time: Logical second to start from; None resumes.
        """
        self.scheduler.start(time)

    def stop(self) -> int:
        """Stop scheduling new requests; in-flight requests still complete.

        Returns:
            Logical second at which the service stopped.
        """
        return self.scheduler.stop()

    def tick(self, second: int) -> list[ResolvedRequest]:
        """Run the dispatch decision for one logical second."""
        return self.executor.tick(second)

    async def wait_idle(self) -> None:
        await self.executor.wait_idle()

    def get_apis(self) -> list[EndpointDefinition]:
        return list(self.executor.definitions)

    def generate_urls(self) -> dict[str, str]:
        """Expand every active endpoint.

        Returns:
            Mapping of request key to concrete URL.
        """
        return {key: req.url for key, req in expand_all(self.executor.definitions).items()}

    def update_used_apis(self, components: Sequence[Mapping[str, Any]] | None = None) -> None:
        """Recompute which request keys are needed.

        Args:
            components: New component configurations; None reuses the
                current ones.
        """
        if components is not None:
            self.components = list(components)
        keys = expand_all(self.executor.definitions).keys()
        self.executor.usage = compute_usage(keys, self.components, self.display_settings)
        used = sum(self.executor.usage.values())
        logger.info(f"{used} of {len(self.executor.usage)} request keys in use")

    def use_all_apis(self) -> None:
        """Mark every request key as used, regardless of components."""
        self.executor.usage = {key: True for key in expand_all(self.executor.definitions)}

    def update_settings(self, display_settings: Mapping[str, Any]) -> None:
        """Replace display settings and recompute usage."""
        self.display_settings = dict(display_settings)
        self.update_used_apis()

    def update(self, definitions: Sequence[EndpointDefinition], restart: bool = True) -> None:
        """Swap the active endpoint definitions.

        Failure counters and backoff delays are cleared so skipped keys get
        another chance. The logical clock is preserved.

        Args:
            definitions: New endpoint definitions.
            restart: Stop and start the scheduler around the swap.
        """
        new_definitions = _check_unique(definitions)
        stop_time = self.stop() if restart else self.time

        self.executor.definitions = new_definitions
        self.failures.clear()
        self.update_used_apis()
        logger.info(f"Endpoint definitions updated ({len(new_definitions)} endpoints)")

        if restart:
            self.start(stop_time)
