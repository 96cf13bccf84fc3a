"""Configuration loading from environment variables and files."""

import json
import logging
import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from feedpoller.ports.endpoint import EndpointDefinition

__all__ = ["Settings", "load_settings", "read_json_file"]

load_dotenv()

logger = logging.getLogger(__name__)
_http_url_adapter = TypeAdapter(HttpUrl)

# Environment variable -> Settings field
_ENV_FIELDS = {
    "COMPONENTS_FILE_PATH": "components_file_path",
    "TICK_INTERVAL_MS": "tick_interval_ms",
    "FAILURE_THRESHOLD": "failure_threshold",
    "RESET_FAILURES_ON_SUCCESS": "reset_failures_on_success",
    "CORS_PROXY_URL": "cors_proxy_url",
    "HTTP_TIMEOUT_SECONDS": "http_timeout_sec",
    "START_TIME": "start_time",
}


def read_json_file(path: str, what: str) -> Any:
    """Read a JSON file, mapping I/O and syntax errors to ValueError.

    Args:
        path: File path.
        what: Human name of the file for error messages.

    Returns:
        Decoded JSON document.

    Raises:
        ValueError: If the file is missing or not valid JSON.
    """
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ValueError(f"{what} file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"{what} file contains invalid JSON: {path}") from e


class Settings(BaseModel):
    """Runtime configuration for the poller service.

    Attributes:
        endpoints_file_path: JSON catalog of endpoint definitions.
        components_file_path: Optional JSON file with components and
            display settings.
        tick_interval_ms: Scheduler poll granularity.
        failure_threshold: Consecutive failures before a key is skipped.
        reset_failures_on_success: Clear failure counts after a success.
        cors_proxy_url: Prefix for CORS-proxied requests.
        http_timeout_sec: Total timeout of one HTTP request.
        start_time: Logical second to start from.
        endpoints: Endpoint definitions (populated from file).
        components: Component configurations (populated from file).
        display_settings: Values for component API references.
    """

    endpoints_file_path: str = Field(..., description="Path to JSON endpoint catalog.")
    components_file_path: str | None = Field(
        default=None,
        description="Optional JSON file with 'components' and 'settings'.",
    )
    tick_interval_ms: int = Field(default=100, gt=0, le=1000)
    failure_threshold: int = Field(default=3, gt=0)
    reset_failures_on_success: bool = False
    cors_proxy_url: str | None = None
    http_timeout_sec: float = Field(default=30, gt=0)
    start_time: int = Field(default=0, ge=0)
    endpoints: list[EndpointDefinition] = Field(default_factory=list)
    components: list[dict[str, Any]] = Field(default_factory=list)
    display_settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("cors_proxy_url")
    @classmethod
    def validate_cors_proxy_url(cls, v: str | None) -> str | None:
        """Validate that the proxy prefix (if provided) is an HTTP(S) URL.

        Raises:
            ValueError: If URL is invalid.
        """
        if not v:
            return None
        try:
            url = _http_url_adapter.validate_python(v)
        except ValidationError as e:
            raise ValueError(f"Invalid CORS proxy URL: {e}") from e
        if url.scheme not in ("http", "https"):
            raise ValueError("Only http(s):// proxies allowed")
        return v

    def load_endpoints(self) -> None:
        """Load and validate endpoint definitions.

        The catalog is either a mapping ``name -> definition`` or a list
        of definitions carrying a ``name`` field.

        Raises:
            ValueError: If the file is missing, malformed or a definition
                is invalid.
        """
        data = read_json_file(self.endpoints_file_path, "Endpoints")
        if isinstance(data, dict):
            raw = [{"name": name, **definition} for name, definition in data.items()]
        elif isinstance(data, list):
            raw = data
        else:
            raise ValueError("Endpoints file must be a JSON object or array")
        if not raw:
            raise ValueError("Endpoints file is empty")

        endpoints = []
        for item in raw:
            if not isinstance(item, dict):
                raise ValueError("Each endpoint must be a JSON object")
            try:
                endpoints.append(EndpointDefinition.model_validate(item))
            except ValidationError as e:
                raise ValueError(f"Invalid endpoint {item.get('name', '<unnamed>')}: {e}") from e

        self.endpoints = endpoints
        logger.debug(f"Loaded {len(endpoints)} endpoints from {self.endpoints_file_path}")

    def load_components(self) -> None:
        """Load components and display settings, if a file is configured.

        Accepts ``{"components": [...], "settings": {...}}`` or a bare
        list of components.

        Raises:
            ValueError: If the file is missing or malformed.
        """
        if not self.components_file_path:
            return
        data = read_json_file(self.components_file_path, "Components")
        if isinstance(data, list):
            components, display = data, {}
        elif isinstance(data, dict):
            components, display = data.get("components", []), data.get("settings", {})
        else:
            raise ValueError("Components file must be a JSON object or array")
        if not isinstance(components, list) or not all(isinstance(c, dict) for c in components):
            raise ValueError("'components' must be a list of JSON objects")
        if not isinstance(display, dict):
            raise ValueError("'settings' must be a JSON object")

        self.components = components
        self.display_settings = display
        logger.debug(f"Loaded {len(components)} components from {self.components_file_path}")


def load_settings() -> Settings:
    """Load and validate settings from environment and files.

    Required environment variables:
    - ENDPOINTS_FILE_PATH: JSON endpoint catalog.

    Optional:
    - COMPONENTS_FILE_PATH, TICK_INTERVAL_MS, FAILURE_THRESHOLD,
      RESET_FAILURES_ON_SUCCESS, CORS_PROXY_URL, HTTP_TIMEOUT_SECONDS,
      START_TIME.

    Returns:
        Validated Settings object.

    Raises:
        RuntimeError: If required env vars are missing or invalid.
        ValueError: If a configuration file is invalid.
    """
    try:
        endpoints_path = os.environ["ENDPOINTS_FILE_PATH"]
    except KeyError as e:
        raise RuntimeError(f"Missing required environment variable: {e.args[0]}") from e

    values: dict[str, Any] = {"endpoints_file_path": endpoints_path}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw not in (None, ""):
            values[field_name] = raw

    try:
        settings = Settings(**values)
    except ValidationError as e:
        raise RuntimeError(f"Invalid environment configuration: {e}") from e

    settings.load_endpoints()
    settings.load_components()

    logger.info(
        f"Poller configured: endpoints={len(settings.endpoints)}, "
        f"components={len(settings.components)}, "
        f"tick={settings.tick_interval_ms}ms, "
        f"failure_threshold={settings.failure_threshold}, "
        f"cors_proxy={settings.cors_proxy_url or '<disabled>'}"
    )

    return settings
