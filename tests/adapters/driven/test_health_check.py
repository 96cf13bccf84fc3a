"""Tests for health check validator."""

import logging
from unittest.mock import Mock, patch

import pytest

from feedpoller.adapters.driven.config.health_check import main
from feedpoller.ports.endpoint import EndpointDefinition

__all__ = []

LOAD_SETTINGS = "feedpoller.adapters.driven.config.health_check.load_settings"


def test_health_check_success() -> None:
    """Health check should return 0 when configuration loads successfully."""
    endpoint = EndpointDefinition(name="news", url="https://news#RSS", interval=600)
    with patch(LOAD_SETTINGS, return_value=Mock(endpoints=[endpoint])):
        result = main()

    assert result == 0


def test_health_check_failure_on_config_error() -> None:
    """Health check should return 1 when configuration fails to load."""
    with patch(LOAD_SETTINGS, side_effect=RuntimeError("Missing required environment variable")):
        result = main()

    assert result == 1


def test_health_check_warns_about_empty_expansions(caplog: pytest.LogCaptureFixture) -> None:
    """Endpoints whose placeholders match nothing should be reported."""
    empty = EndpointDefinition(name="bus", url="https://bus/{{stops.*}}", interval=10, params={"stops": {}})
    with patch(LOAD_SETTINGS, return_value=Mock(endpoints=[empty])), caplog.at_level(logging.WARNING):
        result = main()

    assert result == 0
    assert "Endpoints expanding to no requests: bus" in caplog.text
