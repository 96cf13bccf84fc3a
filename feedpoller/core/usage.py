"""Derive which request keys the displayed components need."""

from collections.abc import Iterable, Mapping
from typing import Any

from feedpoller.core.expander import PLACEHOLDER, get_path, stringify

__all__ = ["compute_usage", "inject_settings", "SUBFIELD_DELIMITER"]

# Text after the delimiter addresses a field inside the payload.
SUBFIELD_DELIMITER = ":"


def inject_settings(value: str, settings: Mapping[str, Any]) -> str:
    """Interpolate ``{{path}}`` tokens from settings in a single pass.

    Missing paths become empty strings. Substituted text is not scanned
    again.

    Args:
        value: Reference string.
        settings: Settings tree.

    Returns:
        Interpolated string.
    """
    return PLACEHOLDER.sub(lambda m: stringify(get_path(settings, m.group(1).strip(), "")), value)


def _referenced_keys(
    components: Iterable[Mapping[str, Any]], settings: Mapping[str, Any]
) -> set[str]:
    referenced = set()
    for component in components:
        apis = component.get("apis") or {}
        if isinstance(apis, Mapping):
            references = apis.values()
        elif isinstance(apis, list):
            references = apis
        else:
            continue
        for reference in references:
            if not isinstance(reference, str):
                continue
            resolved = inject_settings(reference, settings)
            referenced.add(resolved.split(SUBFIELD_DELIMITER, 1)[0])
    return referenced


def compute_usage(
    keys: Iterable[str],
    components: Iterable[Mapping[str, Any]],
    settings: Mapping[str, Any] | None = None,
) -> dict[str, bool]:
    """Build the usage map for a set of request keys.

    A key is used if any component's ``apis`` entry equals the key, or
    equals it up to the first ``:``, after settings interpolation.

    Args:
        keys: Every request key the endpoints expand to.
        components: Component configurations.
        settings: Values for ``{{path}}`` tokens in references.

    Returns:
        Mapping of request key to usage flag.
    """
    referenced = _referenced_keys(components, settings or {})
    return {key: key in referenced for key in keys}
