"""Callback sink port definition."""

from collections.abc import Callable
from typing import Any

__all__ = ["PayloadCallback"]

# Receives (request key, normalized payload); may be called repeatedly per key.
PayloadCallback = Callable[[str, Any], None]
