"""Endpoint definition port (validated schema and resolved request DTO)."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = ["EndpointDefinition", "ResolvedRequest"]

logger = logging.getLogger(__name__)

# First path segment of a {{path}} placeholder
PLACEHOLDER_ROOT = re.compile(r"{{\s*([^.}\s]+)")


class EndpointDefinition(BaseModel):
    """Declarative description of one external source.

    Control fields are fixed; everything used purely for URL/body
    permutation lives in ``params``. Catalog entries written with
    permutation data as sibling keys are accepted and folded into
    ``params`` before validation.

    Attributes:
        name: Endpoint name, first segment of every request key.
        url: URL template with ``{{path}}`` placeholders and optional
            type suffix.
        method: HTTP method.
        interval: Seconds between polls.
        delay: Seconds offset of the first poll.
        offline: Never poll this endpoint.
        transform: Declarative transform spec applied to each response.
        scrape: Dotted globs into the transformed output holding
            scrape directives.
        cache: Memoize scrape results for this endpoint.
        print: Log the raw payload before transformation.
        cors: Force (or forbid) the CORS proxy prefix.
        request: Extra request options (``headers`` is honoured).
        body: Body template, permuted together with the URL.
        params: Permutation parameter tree.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    method: Literal["GET", "POST"] = "GET"
    interval: int = Field(..., gt=0)
    delay: int = Field(default=0, ge=0)
    offline: bool = False
    transform: Any = None
    scrape: list[str] = Field(default_factory=list)
    cache: bool = False
    print_: bool = Field(default=False, alias="print")
    cors: bool | None = None
    request: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    params: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def fold_sibling_params(cls, data: Any) -> Any:
        """Move unknown top-level keys into ``params``.

        Args:
            data: Raw definition mapping.

        Returns:
            Mapping with only known fields at top level.
        """
        if not isinstance(data, dict):
            return data
        known = {f.alias or name for name, f in cls.model_fields.items()} | set(cls.model_fields)
        params = dict(data.get("params") or {})
        folded = {}
        for key, value in data.items():
            if key in known:
                folded[key] = value
            else:
                params[key] = value
        folded["params"] = params
        if isinstance(folded.get("method"), str):
            folded["method"] = folded["method"].upper()
        return folded

    @model_validator(mode="after")
    def warn_unreferenced_params(self) -> "EndpointDefinition":
        """Log parameters no placeholder reads, usually a misspelled field."""
        templates = self.url + json.dumps(self.body, default=str)
        referenced = set(PLACEHOLDER_ROOT.findall(templates))
        unused = sorted(key for key in self.params if key not in referenced)
        if unused:
            logger.warning(f"Endpoint {self.name}: parameters not used by any placeholder: {', '.join(unused)}")
        return self

    @property
    def headers(self) -> dict[str, str]:
        """Request headers declared in ``request``."""
        return {str(k): str(v) for k, v in (self.request.get("headers") or {}).items()}


@dataclass(slots=True, frozen=True)
class ResolvedRequest:
    """One concrete expansion of an endpoint definition.

    Attributes:
        key: Deterministic request key.
        endpoint: Name of the definition it was expanded from.
        url: Concrete URL (type suffix preserved).
        body: Concrete body, or None.
    """

    key: str
    endpoint: str
    url: str
    body: Any = None
