"""Error taxonomy for the polling core."""

__all__ = ["FeedPollerError", "TransportError", "ApplicationError", "TransformError"]


class FeedPollerError(Exception):
    """Base class for all feedpoller errors."""


class TransportError(FeedPollerError):
    """Network, HTTP or body parsing failure for one request."""

    def __init__(self, url: str, message: str = "", status: int | None = None):
        self.url = url
        self.status = status
        super().__init__(message or f"Request to {url} failed (status={status})")


class ApplicationError(FeedPollerError):
    """Payload self-reports an error despite transport success."""

    def __init__(self, key: str, detail: object = None):
        self.key = key
        self.detail = detail
        super().__init__(f"{key} returned an error payload: {detail!r}")


class TransformError(FeedPollerError):
    """Transform expression could not be resolved against the payload."""
