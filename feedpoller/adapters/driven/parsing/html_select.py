"""CSS selector extraction from HTML documents."""

from bs4 import BeautifulSoup

__all__ = ["select_value"]


def select_value(html: str, selector: str, attribute: str | None = None) -> str | None:
    """Extract text or an attribute from the first element matching a selector.

    Args:
        html: HTML document.
        selector: CSS selector.
        attribute: Attribute to read; None returns the element's text.

    Returns:
        Extracted value, or None if nothing matched.

    Raises:
        ValueError: If the selector is invalid.
    """
    soup = BeautifulSoup(html, "html.parser")
    try:
        element = soup.select_one(selector)
    except Exception as e:  # soupsieve raises its own SelectorSyntaxError
        raise ValueError(f"Invalid selector {selector!r}: {e}") from e
    if element is None:
        return None
    if attribute is None:
        return element.get_text(strip=True)

    value = element.get(attribute)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)
