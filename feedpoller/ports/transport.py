"""Transport port definition (interface and DTOs)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

__all__ = ["FetchRequest", "ScrapeDirective", "TransportPort"]


@dataclass
class FetchRequest:
    """One concrete request to be executed by the transport.

    Decouples the core scheduler from HTTP implementation details.

    Attributes:
        ideal_time_sec: Monotonic time of the tick that fired the request.
        url: Target URL, optionally carrying a type suffix (#GET, #POST,
            #RSS, #HTML[:selector[@attr]], #TEXT).
        method: HTTP method requested by the endpoint definition.
        body: Resolved request body (None for bodyless requests).
        headers: Extra request headers.
        cors: Explicit CORS proxy flag; None lets the URL type decide.
    """

    ideal_time_sec: float
    url: str
    method: str = "GET"
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    cors: bool | None = None


@dataclass(slots=True, frozen=True)
class ScrapeDirective:
    """Secondary fetch embedded in a transformed field.

    Attributes:
        url: Page to fetch.
        kind: One of "HTML", "TEXT" or "RSS".
        selector: CSS selector for HTML extraction (None for whole body).
        attribute: Attribute to read from the selected element; None reads
            its text content.
    """

    url: str
    kind: str = "HTML"
    selector: str | None = None
    attribute: str | None = None


class TransportPort(Protocol):
    """Interface for fetching and extracting remote data.

    Implementations raise TransportError on any network, HTTP or parse
    failure so the core can count it against the request key.
    """

    async def fetch(self, req: FetchRequest, /) -> Any:
        """Execute one request and return the parsed body.

        Args:
            req: Request to execute.

        Returns:
            Parsed JSON, XML converted to a dict tree, or raw text.
        """
        ...

    async def scrape(self, directive: ScrapeDirective, /, cache: bool = False) -> str | None:
        """Fetch a page and extract one value from it.

        Args:
            directive: What to fetch and extract.
            cache: Reuse a previously extracted value for the same directive.

        Returns:
            Extracted text, or None when nothing matched.
        """
        ...
