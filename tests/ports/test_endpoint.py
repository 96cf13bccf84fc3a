"""Tests for the endpoint definition schema."""

import logging

import pytest
from pydantic import ValidationError

from feedpoller.ports.endpoint import EndpointDefinition

__all__ = []


def test_sibling_keys_fold_into_params() -> None:
    """Permutation data written next to control fields should land in params."""
    definition = EndpointDefinition.model_validate(
        {
            "name": "coffeePots",
            "interval": 60,
            "url": "https://api/{{affiliation.*}}",
            "affiliation": {"online": "online"},
            "params": {"extra": 1},
        }
    )

    assert definition.params == {"extra": 1, "affiliation": {"online": "online"}}


def test_defaults() -> None:
    """Optional control fields should take their documented defaults."""
    definition = EndpointDefinition(name="news", url="https://news#RSS", interval=600)

    assert definition.method == "GET"
    assert definition.delay == 0
    assert definition.offline is False
    assert definition.cors is None
    assert definition.scrape == []
    assert definition.headers == {}


def test_print_alias_and_headers() -> None:
    """'print' is accepted as an alias and headers come from request options."""
    definition = EndpointDefinition.model_validate(
        {
            "name": "tarbus",
            "interval": 10,
            "url": "https://api/graphql#POST",
            "method": "post",
            "print": True,
            "request": {"headers": {"ET-Client-Name": "feedpoller", "X-Retry": 2}},
        }
    )

    assert definition.print_ is True
    assert definition.method == "POST"
    assert definition.headers == {"ET-Client-Name": "feedpoller", "X-Retry": "2"}


@pytest.mark.parametrize(
    "data",
    [
        {"name": "a", "url": "https://a", "interval": 0},
        {"name": "a", "url": "https://a", "interval": 5, "delay": -1},
        {"name": "a", "url": "https://a", "interval": 5, "method": "DELETE"},
        {"name": "", "url": "https://a", "interval": 5},
        {"name": "a", "interval": 5},
    ],
)
def test_invalid_definitions_rejected(data: dict) -> None:
    """Out-of-range or missing control fields should fail validation."""
    with pytest.raises(ValidationError):
        EndpointDefinition.model_validate(data)


def test_misspelled_control_field_is_reported(caplog: pytest.LogCaptureFixture) -> None:
    """A folded key that no placeholder reads should be logged as suspicious."""
    with caplog.at_level(logging.WARNING, logger="feedpoller.ports.endpoint"):
        definition = EndpointDefinition.model_validate(
            {
                "name": "coffeePots",
                "interval": 60,
                "url": "https://api/{{affiliation.*}}",
                "affiliation": {"online": "online"},
                "ofline": True,
            }
        )

    assert definition.offline is False
    assert "Endpoint coffeePots: parameters not used by any placeholder: ofline" in caplog.text
    assert "affiliation" not in caplog.text


def test_body_placeholders_count_as_references(caplog: pytest.LogCaptureFixture) -> None:
    """Parameters read only by the body template should not be reported."""
    with caplog.at_level(logging.WARNING, logger="feedpoller.ports.endpoint"):
        EndpointDefinition.model_validate(
            {
                "name": "tarbus",
                "interval": 10,
                "url": "https://api/graphql#POST",
                "body": {"query": "{{stops.*.fromCity}}"},
                "stops": {"samf": {"fromCity": "NSR:Quay:1"}},
            }
        )

    assert caplog.text == ""
