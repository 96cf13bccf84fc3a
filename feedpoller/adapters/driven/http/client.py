"""HTTP transport adapter with retry, type suffixes and metrics."""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from types import TracebackType
from typing import Any
from xml.etree import ElementTree as ET

import aiohttp
from aiohttp import ClientTimeout

from feedpoller.adapters.driven.http.retry import retry
from feedpoller.adapters.driven.parsing.html_select import select_value
from feedpoller.adapters.driven.parsing.xml_object import xml_to_object
from feedpoller.core.errors import TransportError
from feedpoller.ports.metrics import FetchAttemptDto, MetricsPort
from feedpoller.ports.transport import FetchRequest, ScrapeDirective

__all__ = ["HttpClient", "TypedUrl", "parse_typed_url"]

logger = logging.getLogger(__name__)

REQUEST_RETRIES = 2
DEFAULT_TIMEOUT = 30
FIRST_FAILING_HTTP_CODE = 400

TYPE_SUFFIX = re.compile(
    r"^(?P<url>.*?)#(?P<kind>GET|POST|RSS|HTML|TEXT)(?::(?P<query>.*))?$", re.DOTALL
)
# Types that go through the CORS proxy unless the endpoint says otherwise
PROXIED_KINDS = frozenset({"RSS", "HTML", "TEXT"})


@dataclass(slots=True, frozen=True)
class TypedUrl:
    """URL split from its ``#TYPE[:selector[@attr]]`` suffix."""

    url: str
    kind: str = "GET"
    selector: str | None = None
    attribute: str | None = None


def parse_typed_url(url: str) -> TypedUrl:
    """Split the response type suffix off a URL.

    Args:
        url: e.g. ``https://host/page#HTML:.title@href``.

    Returns:
        Parsed URL; plain URLs are JSON GETs.
    """
    match = TYPE_SUFFIX.match(url)
    if not match:
        return TypedUrl(url=url)
    selector = attribute = None
    if match.group("kind") == "HTML" and match.group("query"):
        selector, sep, attr = match.group("query").rpartition("@")
        if not sep:
            selector, attribute = attr, None
        else:
            attribute = attr or None
        selector = selector or None
    return TypedUrl(
        url=match.group("url"),
        kind=match.group("kind"),
        selector=selector,
        attribute=attribute,
    )


class HttpClient:
    """aiohttp transport for endpoint polling and scraping.

    Features:
    - Response type selected by URL suffix (JSON, RSS/XML, HTML, text).
    - Retry with backoff on transient network errors.
    - Optional CORS proxy prefix.
    - In-memory scrape cache for endpoints that ask for it.
    - Metrics collection (jitter, failure rate).
    - Context manager for proper resource cleanup.
    """

    def __init__(
        self,
        metrics: MetricsPort | None = None,
        *,
        cors_proxy: str | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize HTTP client.

        Args:
            metrics: Optional metrics collector to track attempts.
            cors_proxy: URL prefix for CORS-proxied requests.
            timeout_sec: Total timeout of one HTTP request.
        """
        self.metrics = metrics
        self.cors_proxy = cors_proxy or ""
        self.timeout_sec = timeout_sec
        self.session: aiohttp.ClientSession | None = None
        self._scrape_cache: dict[ScrapeDirective, str | None] = {}

    async def __aenter__(self) -> "HttpClient":
        """Enter async context manager (start session).

        Returns:
            Self for use in async with statement.
        """
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Exit async context manager (close session)."""
        if self.session:
            await self.session.close()

    def with_cors(self, url: str, kind: str, cors: bool | None) -> str:
        """Prefix the CORS proxy when requested or implied by the type."""
        use_proxy = cors if cors is not None else kind in PROXIED_KINDS
        if use_proxy and self.cors_proxy:
            return f"{self.cors_proxy}{url}"
        return url

    @retry(times=REQUEST_RETRIES)
    async def _raw_request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, str]:
        """Single HTTP request returning status and body text (with retry).

        Raises:
            RuntimeError: If session not initialized.
            aiohttp exceptions: Network/timeout errors (retried by decorator).
        """
        if self.session is None:
            raise RuntimeError("Session not initialized; use 'async with' context manager")

        kwargs: dict[str, Any] = {"headers": headers or None, "timeout": ClientTimeout(total=self.timeout_sec)}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["data"] = str(body)

        resp = await self.session.request(method, url, **kwargs)
        try:
            return resp.status, await resp.text()
        finally:
            resp.release()

    async def _get_text(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        headers: dict[str, str] | None = None,
        scheduled_at: float | None = None,
    ) -> str:
        """Send a request, record metrics and return the body of a 2xx/3xx response."""
        loop = asyncio.get_running_loop()
        fired = loop.time()
        status: int | None = None
        try:
            status, text = await self._raw_request(method, url, body, headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._record(scheduled_at, fired, loop.time(), failed=True, status=None)
            raise TransportError(url, f"Request to {url} failed: {e}") from e

        failed = status >= FIRST_FAILING_HTTP_CODE
        self._record(scheduled_at, fired, loop.time(), failed=failed, status=status)
        if failed:
            raise TransportError(url, status=status)
        return text

    def _record(
        self,
        scheduled_at: float | None,
        fired: float,
        finished: float,
        *,
        failed: bool,
        status: int | None,
    ) -> None:
        if self.metrics is None:
            return
        self.metrics.update(
            FetchAttemptDto(
                scheduled_at_sec=fired if scheduled_at is None else scheduled_at,
                fired_at_sec=fired,
                finished_at_sec=finished,
                is_failed=failed,
                status_code=status,
            )
        )
        logger.debug(f"Fetch metrics: {self.metrics}")

    async def fetch(self, req: FetchRequest) -> Any:
        """Execute one endpoint request and parse the body by type.

        Args:
            req: Request with a possibly type-suffixed URL.

        Returns:
            Parsed JSON for #GET/#POST, a dict tree for #RSS, extracted
            text for #HTML with a selector, raw text otherwise.

        Raises:
            TransportError: Network failure, HTTP error status or
                unparseable body.
        """
        typed = parse_typed_url(req.url)
        method = "POST" if typed.kind == "POST" else req.method
        url = self.with_cors(typed.url, typed.kind, req.cors)

        text = await self._get_text(
            method, url, body=req.body, headers=req.headers, scheduled_at=req.ideal_time_sec
        )
        try:
            return self._parse(typed, text)
        except (ValueError, ET.ParseError) as e:
            raise TransportError(url, f"Could not parse {typed.kind} body from {url}: {e}") from e

    @staticmethod
    def _parse(typed: TypedUrl, text: str) -> Any:
        if typed.kind in ("GET", "POST"):
            return json.loads(text)
        if typed.kind == "RSS":
            return xml_to_object(text)
        if typed.kind == "HTML" and typed.selector:
            return select_value(text, typed.selector, typed.attribute)
        return text

    async def scrape(self, directive: ScrapeDirective, cache: bool = False) -> str | None:
        """Fetch a page and extract one value from it.

        Args:
            directive: Page URL, type and selector.
            cache: Reuse the value extracted earlier for the same directive.

        Returns:
            Extracted value, the whole body when no selector is given, or
            None when the selector matched nothing.

        Raises:
            TransportError: Network failure, HTTP error or invalid selector.
        """
        if cache and directive in self._scrape_cache:
            return self._scrape_cache[directive]

        url = self.with_cors(directive.url, directive.kind, None)
        text = await self._get_text("GET", url)
        if directive.selector:
            try:
                value = select_value(text, directive.selector, directive.attribute)
            except ValueError as e:
                raise TransportError(url, str(e)) from e
        else:
            value = text

        if cache:
            self._scrape_cache[directive] = value
        return value
