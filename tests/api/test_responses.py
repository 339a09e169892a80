"""Tests for response composition."""

import json

import pytest

from src.api.responses import error_response, from_exception, image_response, redirect_response
from src.core.errors import (
    ClientInputError,
    FetchFailureKind,
    OutputTooLargeError,
    SecurityRejection,
    TransformError,
    UpstreamFetchError,
)


class TestErrorResponses:
    """Test failure mapping."""

    @pytest.mark.parametrize(
        "exc, status_code, reason",
        [
            (ClientInputError("x", reason="invalid URL format"), 400, "invalid URL format"),
            (SecurityRejection("x"), 403, "URL validation failed"),
            (UpstreamFetchError(FetchFailureKind.TOO_LARGE), 413, "image file too large"),
            (
                UpstreamFetchError(FetchFailureKind.UNSUPPORTED_MEDIA_TYPE),
                415,
                "unsupported media type",
            ),
            (TransformError("x"), 500, "error transforming image"),
            (
                UpstreamFetchError(FetchFailureKind.FETCH_FAILED, upstream_status=404),
                502,
                "failed to fetch external image",
            ),
            (
                UpstreamFetchError(FetchFailureKind.TIMEOUT),
                504,
                "request timeout while fetching image",
            ),
            (OutputTooLargeError("x"), 413, "requested transformed image is too big"),
        ],
    )
    def test_status_and_reason(self, exc: Exception, status_code: int, reason: str) -> None:
        """Test each failure maps to its status and stable reason."""
        response = from_exception(exc)  # type: ignore[arg-type]

        assert response.status_code == status_code
        assert json.loads(response.body) == {"error": reason}
        assert response.headers["cache-control"] == "no-store"
        assert response.headers["content-type"] == "application/json"

    def test_diagnostic_detail_not_exposed(self) -> None:
        """Test upstream detail stays out of the client message."""
        exc = UpstreamFetchError(
            FetchFailureKind.FETCH_FAILED, "HTTP 500 from https://internal/secret"
        )

        assert b"secret" not in from_exception(exc).body

    def test_error_response(self) -> None:
        """Test ad-hoc error responses."""
        response = error_response(429, "rate limit exceeded")

        assert response.status_code == 429
        assert json.loads(response.body) == {"error": "rate limit exceeded"}


class TestSuccessResponses:
    """Test image and redirect responses."""

    def test_image_response(self) -> None:
        """Test image headers."""
        response = image_response(
            b"img", "image/webp", "max-age=31622400", "img-download;dur=5"
        )

        assert response.status_code == 200
        assert response.body == b"img"
        assert response.headers["content-type"] == "image/webp"
        assert response.headers["cache-control"] == "max-age=31622400"
        assert response.headers["server-timing"] == "img-download;dur=5"
        assert response.headers["x-cache"] == "miss"

    def test_image_response_without_timing(self) -> None:
        """Test cache hits carry no Server-Timing header."""
        response = image_response(b"img", "image/png", "max-age=1", cache_status="edge-hit")

        assert "server-timing" not in response.headers
        assert response.headers["x-cache"] == "edge-hit"

    def test_redirect_response(self) -> None:
        """Test the oversize redirect is uncacheable."""
        response = redirect_response("/proxy/abc/width=300", "img-upload;dur=3")

        assert response.status_code == 307
        assert response.headers["location"] == "/proxy/abc/width=300"
        assert response.headers["cache-control"] == "no-store"
