"""Declarative response transforms and scrape sub-fetches.

A transform spec is a nested structure whose string leaves hold
``{{expr}}`` tokens resolved against the payload::

    {
        "departures": {
            "{{#each departures}}": {
                "name": "{{destination}}",
                "number": "{{line}}",
            },
        },
    }

Specs are compiled once into a small tree of nodes (``Literal``,
``Constant``, ``ForEach``, ``If``, ``MapNode``, ``ListNode``) and then
rendered against each payload. Unresolvable expressions render as empty
values; rendering never raises.

Fields named by ``scrape`` globs may then hold directives such as
``[[https://host/article#HTML:.hero img@src]]``; each one is replaced by
the value extracted from a secondary fetch.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from feedpoller.core.errors import TransformError, TransportError
from feedpoller.core.expander import PLACEHOLDER, stringify
from feedpoller.ports.endpoint import EndpointDefinition
from feedpoller.ports.transport import ScrapeDirective, TransportPort

__all__ = [
    "Literal",
    "Constant",
    "ForEach",
    "If",
    "MapNode",
    "ListNode",
    "compile_transform",
    "render",
    "evaluate",
    "parse_scrape_directive",
    "resolve_scrapes",
    "transform_payload",
]

logger = logging.getLogger(__name__)

EACH_DIRECTIVE = re.compile(r"^{{\s*#each\s+(.+?)\s*}}$")
IF_DIRECTIVE = re.compile(r"^{{\s*#if\s+(.+?)\s*}}$")
WHOLE_TOKEN = re.compile(r"^{{([^}]+)}}$")
PATH_SEGMENT = re.compile(
    r"""\[\s*(?P<index>\d+)\s*\]"""
    r"""|\[\s*"(?P<dq>[^"]*)"\s*\]"""
    r"""|\[\s*'(?P<sq>[^']*)'\s*\]"""
    r"""|(?P<name>[^.\[\]]+)"""
    r"""|(?P<dot>\.)"""
)
# A closing "]]" followed by another "]" belongs to the selector
SCRAPE_MARK = re.compile(r"\[\[(.+?)\]\](?!\])")
SCRAPE_BODY = re.compile(r"^(?P<url>.*?)#(?P<kind>HTML|TEXT|RSS)(?::(?P<query>.*))?$", re.DOTALL)


class _Omitted:
    """Marker for a sub-template excluded by a failed condition."""

    def __repr__(self) -> str:
        return "OMITTED"


OMITTED = _Omitted()


@dataclass(frozen=True)
class Literal:
    template: str
    tokens: tuple[str, ...]


@dataclass(frozen=True)
class Constant:
    value: Any


@dataclass(frozen=True)
class ForEach:
    path: str
    body: "Node"


@dataclass(frozen=True)
class If:
    expr: str
    body: "Node"


@dataclass(frozen=True)
class MapNode:
    # A None key merges the child's rendered mapping into the parent.
    children: tuple[tuple[str | None, "Node"], ...]


@dataclass(frozen=True)
class ListNode:
    items: tuple["Node", ...]


Node = Literal | Constant | ForEach | If | MapNode | ListNode


def _directive(key: str, body: Any) -> ForEach | If | None:
    each = EACH_DIRECTIVE.match(key.strip())
    if each:
        compiled = compile_transform(body)
        if isinstance(compiled, ListNode) and len(compiled.items) == 1:
            compiled = compiled.items[0]
        return ForEach(path=each.group(1), body=compiled)
    cond = IF_DIRECTIVE.match(key.strip())
    if cond:
        return If(expr=cond.group(1), body=compile_transform(body))
    return None


def compile_transform(spec: Any) -> Node:
    """Compile a raw transform spec into a node tree.

    Args:
        spec: Nested dict/list/str structure.

    Returns:
        Root node.
    """
    if isinstance(spec, dict):
        if len(spec) == 1:
            key, body = next(iter(spec.items()))
            node = _directive(str(key), body)
            if node is not None:
                return node
        children: list[tuple[str | None, Node]] = []
        for key, body in spec.items():
            node = _directive(str(key), body)
            if isinstance(node, If):
                children.append((None, node))
            elif isinstance(node, ForEach):
                logger.warning(f"Ignoring '{key}': #each must be the only key of its mapping")
            else:
                children.append((str(key), compile_transform(body)))
        return MapNode(children=tuple(children))
    if isinstance(spec, list):
        return ListNode(items=tuple(compile_transform(item) for item in spec))
    if isinstance(spec, str):
        tokens = tuple(t.strip() for t in PLACEHOLDER.findall(spec))
        if tokens:
            return Literal(template=spec, tokens=tokens)
    return Constant(value=spec)


def _resolve(expr: str, context: Any, root: Any) -> Any:
    """Resolve a path expression, raising TransformError when it cannot."""
    expr = expr.strip()
    if not expr:
        raise TransformError("empty expression")

    node = context
    position = 0
    first = True
    for match in PATH_SEGMENT.finditer(expr):
        if match.start() != position:
            raise TransformError(f"malformed expression: {expr!r}")
        position = match.end()
        if match.group("dot") is not None:
            continue

        name = match.group("name")
        if first and name in ("this", "$root"):
            node = context if name == "this" else root
            first = False
            continue
        first = False

        if match.group("index") is not None:
            key: str | int = int(match.group("index"))
        elif name is not None:
            key = name.strip()
        else:
            key = match.group("dq") if match.group("dq") is not None else match.group("sq")

        if isinstance(node, dict) and str(key) in node:
            node = node[str(key)]
        elif isinstance(node, list) and str(key).isdigit() and int(key) < len(node):
            node = node[int(key)]
        else:
            raise TransformError(f"{expr!r}: no {key!r} in {type(node).__name__}")

    if position != len(expr):
        raise TransformError(f"malformed expression: {expr!r}")
    return node


def evaluate(expr: str, context: Any, root: Any = None) -> Any:
    """Resolve a path expression against the current context.

    Args:
        expr: Dotted path, e.g. ``title[0]`` or ``this["dc:creator"][0]``.
        context: Current element (the payload, or the item of an #each).
        root: Whole payload, reachable as ``$root``.

    Returns:
        Resolved value, or None when the path is missing or malformed.
    """
    try:
        return _resolve(expr, context, context if root is None else root)
    except TransformError as e:
        logger.debug(f"Transform path unresolved: {e}")
        return None


def _condition(expr: str, context: Any, root: Any) -> bool:
    expr = expr.strip()
    if expr.startswith("!"):
        return not _condition(expr[1:], context, root)
    return bool(evaluate(expr, context, root))


def _collection(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.values())
    return []


def render(node: Node, context: Any, root: Any = None) -> Any:
    """Render a compiled node against a payload.

    Args:
        node: Compiled transform.
        context: Current payload element.
        root: Whole payload (defaults to ``context``).

    Returns:
        Normalized structure; OMITTED when a top-level #if fails.
    """
    root = context if root is None else root

    if isinstance(node, Constant):
        return node.value
    if isinstance(node, Literal):
        whole = WHOLE_TOKEN.match(node.template)
        if whole and len(node.tokens) == 1:
            return evaluate(node.tokens[0], context, root)
        return PLACEHOLDER.sub(
            lambda m: stringify(evaluate(m.group(1), context, root)), node.template
        )
    if isinstance(node, ForEach):
        rendered = (render(node.body, item, root) for item in _collection(evaluate(node.path, context, root)))
        return [item for item in rendered if item is not OMITTED]
    if isinstance(node, If):
        return render(node.body, context, root) if _condition(node.expr, context, root) else OMITTED
    if isinstance(node, MapNode):
        out: dict[str, Any] = {}
        for key, child in node.children:
            value = render(child, context, root)
            if value is OMITTED:
                continue
            if key is None:
                if isinstance(value, dict):
                    out.update(value)
                else:
                    logger.debug(f"Dropping non-mapping #if body {value!r} inside a mapping")
            else:
                out[key] = value
        return out
    if isinstance(node, ListNode):
        rendered_items = (render(item, context, root) for item in node.items)
        return [item for item in rendered_items if item is not OMITTED]
    raise TypeError(f"Unknown transform node: {node!r}")


def parse_scrape_directive(text: str) -> ScrapeDirective | None:
    """Parse the inside of a ``[[...]]`` scrape marker.

    Args:
        text: e.g. ``https://host/a#HTML:.hero img@src``.

    Returns:
        Directive, or None if no type marker is present.
    """
    match = SCRAPE_BODY.match(text.strip())
    if not match:
        return None
    selector = attribute = None
    query = match.group("query")
    if query:
        selector, sep, attr = query.rpartition("@")
        if not sep:
            selector, attribute = attr, None
        else:
            attribute = attr.strip() or None
        selector = selector.strip() or None
    return ScrapeDirective(
        url=match.group("url").strip(),
        kind=match.group("kind"),
        selector=selector,
        attribute=attribute,
    )


def _glob_targets(tree: Any, segments: list[str]) -> Iterator[tuple[Any, str | int]]:
    """Yield (container, key) for every output slot matching a glob."""
    if not segments:
        return
    head, rest = segments[0], segments[1:]
    if isinstance(tree, dict):
        keys: list[str | int] = list(tree) if head == "*" else ([head] if head in tree else [])
    elif isinstance(tree, list):
        if head == "*":
            keys = list(range(len(tree)))
        else:
            keys = [int(head)] if head.isdigit() and int(head) < len(tree) else []
    else:
        return
    for key in keys:
        if rest:
            yield from _glob_targets(tree[key], rest)
        else:
            yield tree, key


async def _scrape_one(
    directive_text: str, transport: TransportPort, cache: bool
) -> str:
    directive = parse_scrape_directive(directive_text)
    if directive is None:
        logger.warning(f"Unrecognized scrape directive: [[{directive_text}]]")
        return ""
    try:
        value = await transport.scrape(directive, cache=cache)
    except TransportError as e:
        logger.warning(f"Scrape failed for {directive.url}: {e}")
        return ""
    return "" if value is None else value


async def _scrape_field(container: Any, key: str | int, transport: TransportPort, cache: bool) -> None:
    template = container[key]
    marks = SCRAPE_MARK.findall(template)
    values = await asyncio.gather(*(_scrape_one(mark, transport, cache) for mark in marks))
    replacements = iter(values)
    container[key] = SCRAPE_MARK.sub(lambda _: next(replacements), template)


async def resolve_scrapes(
    output: Any,
    globs: list[str],
    transport: TransportPort,
    *,
    cache: bool = False,
) -> Any:
    """Replace scrape directives in the fields named by ``globs``.

    All sub-fetches run concurrently; the call returns only when every
    one of them has resolved.

    Args:
        output: Rendered transform output, mutated in place.
        globs: Dotted paths with ``*`` wildcards.
        transport: Transport used for secondary fetches.
        cache: Let the transport reuse earlier scrape results.

    Returns:
        The same output structure.
    """
    jobs = []
    seen: set[tuple[int, str | int]] = set()
    for glob in globs:
        for container, key in _glob_targets(output, glob.split(".")):
            value = container[key]
            if (id(container), key) in seen:
                continue
            if isinstance(value, str) and SCRAPE_MARK.search(value):
                seen.add((id(container), key))
                jobs.append(_scrape_field(container, key, transport, cache))
    if jobs:
        await asyncio.gather(*jobs)
    return output


async def transform_payload(
    definition: EndpointDefinition, payload: Any, transport: TransportPort
) -> Any:
    """Normalize one raw payload for an endpoint.

    Args:
        definition: Endpoint whose transform and scrape globs apply.
        payload: Parsed response body.
        transport: Transport for scrape sub-fetches.

    Returns:
        Normalized payload (the raw payload when no transform is defined).
    """
    if definition.transform is None:
        output = payload
    else:
        output = render(compile_transform(definition.transform), payload)
        if output is OMITTED:
            output = None
    if definition.scrape:
        output = await resolve_scrapes(output, definition.scrape, transport, cache=definition.cache)
    return output
