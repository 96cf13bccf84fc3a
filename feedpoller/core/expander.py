"""URL template expansion into concrete requests.

An endpoint URL such as ``https://host/departures/{{stops.*.fromCity,toCity}}``
with ``params={"stops": {"samf": {"fromCity": "1", "toCity": "2"}}}``
expands into one request per matching parameter path::

    tarbus.stops.samf.fromCity -> https://host/departures/1
    tarbus.stops.samf.toCity   -> https://host/departures/2

Every placeholder occurrence (in the URL first, then in the string leaves of
the body template) is an independent slot; slots are cross-multiplied left
to right.
"""

import json
import logging
import re
from collections.abc import Iterable, Iterator
from typing import Any

from feedpoller.ports.endpoint import EndpointDefinition, ResolvedRequest

__all__ = ["PLACEHOLDER", "expand", "expand_all", "find_paths", "get_path", "stringify"]

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"{{([^}]+)}}")
WILDCARD = "*"


def stringify(value: Any) -> str:
    """Render a parameter value for substitution into a template.

    Args:
        value: Scalar or nested value.

    Returns:
        Text representation (JSON for maps and lists).
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _children(node: Any, segment: str) -> Iterator[tuple[str, Any]]:
    """Yield (key, child) pairs of ``node`` selected by one path segment."""
    if segment == WILDCARD:
        if isinstance(node, dict):
            yield from ((str(k), v) for k, v in node.items())
        elif isinstance(node, list):
            yield from ((str(i), v) for i, v in enumerate(node))
        return

    for alternate in segment.split(","):
        alternate = alternate.strip()
        if isinstance(node, dict) and alternate in node:
            yield alternate, node[alternate]
        elif isinstance(node, list) and alternate.isdigit() and int(alternate) < len(node):
            yield alternate, node[int(alternate)]


def find_paths(tree: Any, pattern: str) -> list[tuple[str, Any]]:
    """Resolve a placeholder pattern against a parameter tree.

    Args:
        tree: Parameter tree (nested dicts/lists).
        pattern: Dotted pattern; ``*`` iterates every key, ``a,b`` tries
            sibling alternates.

    Returns:
        (dotted path, value) for every match, in insertion order.
    """
    matches: list[tuple[str, Any]] = [("", tree)]
    for segment in pattern.strip().split("."):
        matches = [
            (f"{prefix}.{key}" if prefix else key, child)
            for prefix, node in matches
            for key, child in _children(node, segment)
        ]
        if not matches:
            break
    return matches


def get_path(tree: Any, path: str, default: Any = None) -> Any:
    """Look up a plain dotted path (no wildcards) in a nested structure."""
    node = tree
    for segment in path.split("."):
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
            node = node[int(segment)]
        else:
            return default
    return node


def _body_slots(body: Any) -> list[str]:
    """Collect placeholder patterns from body string leaves, depth first."""
    if isinstance(body, str):
        return PLACEHOLDER.findall(body)
    if isinstance(body, dict):
        return [slot for value in body.values() for slot in _body_slots(value)]
    if isinstance(body, list):
        return [slot for value in body for slot in _body_slots(value)]
    return []


def _render_body(body: Any, values: Iterator[str]) -> Any:
    if isinstance(body, str):
        return PLACEHOLDER.sub(lambda _: next(values), body)
    if isinstance(body, dict):
        return {k: _render_body(v, values) for k, v in body.items()}
    if isinstance(body, list):
        return [_render_body(v, values) for v in body]
    return body


def expand(definition: EndpointDefinition) -> list[ResolvedRequest]:
    """Expand one endpoint definition into its full cartesian request set.

    Args:
        definition: Endpoint to expand.

    Returns:
        Resolved requests in deterministic order. Empty when any
        placeholder matches no parameter path.
    """
    slots = PLACEHOLDER.findall(definition.url) + _body_slots(definition.body)

    combos: list[tuple[tuple[str, ...], str]] = [((), definition.name)]
    for slot in slots:
        matches = find_paths(definition.params, slot)
        if not matches:
            logger.warning(
                f"ExpansionWarning: placeholder '{{{{{slot}}}}}' in {definition.name} "
                "matched no parameters; no requests generated"
            )
            return []
        combos = [
            (values + (stringify(value),), f"{key}.{path}")
            for values, key in combos
            for path, value in matches
        ]

    n_url_slots = len(PLACEHOLDER.findall(definition.url))
    requests = []
    for values, key in combos:
        url_values = iter(values[:n_url_slots])
        body_values = iter(values[n_url_slots:])
        requests.append(
            ResolvedRequest(
                key=key,
                endpoint=definition.name,
                url=PLACEHOLDER.sub(lambda _: next(url_values), definition.url),
                body=_render_body(definition.body, body_values),
            )
        )
    return requests


def expand_all(definitions: Iterable[EndpointDefinition]) -> dict[str, ResolvedRequest]:
    """Expand every definition, keyed by request key.

    Args:
        definitions: Endpoint definitions.

    Returns:
        Mapping of request key to resolved request.
    """
    return {req.key: req for definition in definitions for req in expand(definition)}
