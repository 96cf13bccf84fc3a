"""Callback sink writing one JSON line per delivered payload."""

import json
import logging
import sys
import time
from typing import Any, TextIO

__all__ = ["JsonLinesSink"]

logger = logging.getLogger(__name__)


class JsonLinesSink:
    """Write ``{"ts", "key", "data"}`` lines to a stream.

    Keeps the latest payload per key so a display layer can read the
    current state without replaying the stream.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout
        self.latest: dict[str, Any] = {}

    def __call__(self, key: str, data: Any) -> None:
        self.latest[key] = data
        line = json.dumps({"ts": time.time(), "key": key, "data": data}, ensure_ascii=False, default=str)
        self.stream.write(line + "\n")
        self.stream.flush()
        logger.debug(f"Delivered {key}")
