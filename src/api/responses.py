"""Response composition for every proxy outcome."""

from typing import Optional

from fastapi.responses import JSONResponse, Response

from src.api.models import ErrorResponse
from src.core.errors import ImageProxyError

NO_STORE = "no-store"


def error_response(status_code: int, reason: str) -> JSONResponse:
    """Build the JSON error body shared by all failure paths."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=reason).model_dump(),
        headers={"Cache-Control": NO_STORE},
    )


def from_exception(exc: ImageProxyError) -> JSONResponse:
    """Map a pipeline failure to its status code and stable reason."""
    return error_response(exc.status_code, exc.reason)


def image_response(
    body: bytes,
    content_type: str,
    cache_control: str,
    server_timing: Optional[str] = None,
    cache_status: str = "miss",
) -> Response:
    """
    Build a 200 response carrying image bytes.

    Args:
        body: Image bytes
        content_type: Media type of the image
        cache_control: Cache directive for downstream caches
        server_timing: Server-Timing header value, if any phases ran
        cache_status: Tier that served the image (edge-hit, store-hit, miss)

    Returns:
        Binary response
    """
    headers = {
        "Cache-Control": cache_control,
        "X-Cache": cache_status,
    }
    if server_timing:
        headers["Server-Timing"] = server_timing

    return Response(content=body, media_type=content_type, headers=headers)


def redirect_response(location: str, server_timing: Optional[str] = None) -> Response:
    """Build an uncacheable 307 to the stored copy of an oversized image."""
    headers = {
        "Location": location,
        "Cache-Control": NO_STORE,
    }
    if server_timing:
        headers["Server-Timing"] = server_timing

    return Response(status_code=307, headers=headers)
