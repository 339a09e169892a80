"""Failure taxonomy for the proxy pipeline.

Every class carries the HTTP status and the terse, stable reason string sent
to clients. Diagnostic detail belongs in the exception message and the logs,
never in ``reason``.
"""

from enum import Enum
from typing import Optional


class ImageProxyError(Exception):
    """Base class for failures that map to a structured error response."""

    status_code = 500
    reason = "internal server error"

    def __init__(self, message: str = "", reason: Optional[str] = None):
        super().__init__(message or reason or self.reason)
        if reason is not None:
            self.reason = reason


class ClientInputError(ImageProxyError):
    """Raised when the request itself is malformed."""

    status_code = 400
    reason = "bad request"


class SecurityRejection(ImageProxyError):
    """Raised when a URL targets a forbidden scheme or network."""

    status_code = 403
    reason = "URL validation failed"


class FetchFailureKind(str, Enum):
    """Kinds of upstream fetch failure."""

    TIMEOUT = "timeout"
    TOO_LARGE = "too-large"
    UNSUPPORTED_MEDIA_TYPE = "unsupported-media-type"
    FETCH_FAILED = "fetch-failed"


_FETCH_FAILURES: dict[FetchFailureKind, tuple[int, str]] = {
    FetchFailureKind.TIMEOUT: (504, "request timeout while fetching image"),
    FetchFailureKind.TOO_LARGE: (413, "image file too large"),
    FetchFailureKind.UNSUPPORTED_MEDIA_TYPE: (415, "unsupported media type"),
    FetchFailureKind.FETCH_FAILED: (502, "failed to fetch external image"),
}


class UpstreamFetchError(ImageProxyError):
    """Raised when the external image cannot be retrieved."""

    def __init__(
        self,
        kind: FetchFailureKind,
        message: str = "",
        upstream_status: Optional[int] = None,
    ):
        self.kind = kind
        self.upstream_status = upstream_status
        self.status_code, reason = _FETCH_FAILURES[kind]
        super().__init__(message, reason=reason)


class TransformError(ImageProxyError):
    """Raised when the codec cannot decode or encode the image."""

    status_code = 500
    reason = "error transforming image"


class OutputTooLargeError(ImageProxyError):
    """Raised when an oversized result cannot be handed off to storage."""

    status_code = 413
    reason = "requested transformed image is too big"


class PersistenceError(Exception):
    """Raised when the durable store rejects a write. Never client-visible."""

    pass
