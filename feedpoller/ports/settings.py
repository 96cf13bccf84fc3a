"""Settings port definition (DTO)."""

from dataclasses import dataclass, field
from typing import Any

__all__ = ["SettingsPort"]


@dataclass
class SettingsPort:
    """Runtime settings for the polling core.

    Decouples core from concrete configuration sources, enabling
    easy testing and implementation swapping.

    Attributes:
        tick_interval_ms: Granularity of the scheduler driver in milliseconds.
        failure_threshold: Consecutive failures before a key is skipped.
        reset_failures_on_success: Clear a key's failure count after a
            successful fetch.
        start_time: Logical second the scheduler starts counting from.
        components: Component configurations declaring API references.
        display_settings: Values interpolated into component API references.
    """

    tick_interval_ms: int = 100
    failure_threshold: int = 3
    reset_failures_on_success: bool = False
    start_time: int = 0
    components: list[dict[str, Any]] = field(default_factory=list)
    display_settings: dict[str, Any] = field(default_factory=dict)
