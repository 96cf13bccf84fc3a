"""Tests for main application entrypoint."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, Mock, patch

import pytest

from feedpoller.main import build_settings_port, main
from feedpoller.ports.settings import SettingsPort

__all__ = []


def make_config(components: list | None = None) -> Mock:
    """Create a loaded-settings stand-in."""
    config = Mock()
    config.tick_interval_ms = 100
    config.failure_threshold = 3
    config.reset_failures_on_success = False
    config.start_time = 0
    config.components = components or []
    config.display_settings = {}
    config.endpoints = []
    config.cors_proxy_url = None
    config.http_timeout_sec = 30
    return config


@pytest.fixture
def mocks() -> Iterator[dict[str, Mock]]:
    """Patch every collaborator of main().

    Yields:
        Mapping of collaborator name to its mock.
    """
    with (
        patch("feedpoller.main.configure_logs"),
        patch("feedpoller.main.load_settings") as mock_load_settings,
        patch("feedpoller.main.HttpClient") as mock_http_client_class,
        patch("feedpoller.main.Metrics"),
        patch("feedpoller.main.JsonLinesSink"),
        patch("feedpoller.main.ApiService") as mock_service_class,
        patch("feedpoller.main.wait_for_stop_signal") as mock_stop_signal,
        patch("feedpoller.main.logger") as mock_logger,
    ):
        mock_http_client = AsyncMock()
        mock_http_client_class.return_value = mock_http_client
        mock_http_client.__aenter__.return_value = mock_http_client

        service = Mock()
        service.wait_idle = AsyncMock()
        service.stop.return_value = 12
        service.executor.in_flight = 0
        mock_service_class.return_value = service

        # Stop event that is already set
        mock_stop_signal.return_value = Mock(wait=AsyncMock())

        yield {
            "load_settings": mock_load_settings,
            "http_client_class": mock_http_client_class,
            "service_class": mock_service_class,
            "service": service,
            "logger": mock_logger,
        }


def test_build_settings_port() -> None:
    """Loaded settings should map onto the core settings port."""
    config = make_config(components=[{"template": "Bus", "apis": {}}])
    config.display_settings = {"bus": "samf"}

    port = build_settings_port(config)

    assert port == SettingsPort(
        tick_interval_ms=100,
        failure_threshold=3,
        reset_failures_on_success=False,
        start_time=0,
        components=[{"template": "Bus", "apis": {}}],
        display_settings={"bus": "samf"},
    )


@pytest.mark.asyncio
async def test_main_aborts_on_config_error(mocks: dict[str, Mock]) -> None:
    """Main should not create a service when configuration fails."""
    mocks["load_settings"].side_effect = RuntimeError("Missing required environment variable")

    await main()

    mocks["logger"].error.assert_called_once()
    mocks["http_client_class"].assert_not_called()
    mocks["service_class"].assert_not_called()


@pytest.mark.asyncio
async def test_main_runs_until_stop_and_drains(mocks: dict[str, Mock]) -> None:
    """Main should start the service, wait for stop, then stop and drain."""
    mocks["load_settings"].return_value = make_config(
        components=[{"template": "Bus", "apis": {"from": "tarbus:departures"}}]
    )

    await main()

    service = mocks["service"]
    service.start.assert_called_once()
    service.stop.assert_called_once()
    service.wait_idle.assert_awaited_once()
    service.use_all_apis.assert_not_called()


@pytest.mark.asyncio
async def test_main_uses_all_apis_without_components(mocks: dict[str, Mock]) -> None:
    """Without components every expanded key should be polled."""
    mocks["load_settings"].return_value = make_config(components=[])

    await main()

    mocks["service"].use_all_apis.assert_called_once()


@pytest.mark.asyncio
async def test_main_logs_and_stops_on_service_exception(mocks: dict[str, Mock]) -> None:
    """Errors while running should be logged and the service still stopped."""
    mocks["load_settings"].return_value = make_config()
    mocks["service"].start.side_effect = RuntimeError("Test error in scheduler")

    try:
        await main()
    except RuntimeError:
        pytest.fail("main() should not raise; exceptions are caught internally")

    mocks["logger"].error.assert_called()
    mocks["service"].stop.assert_called_once()
