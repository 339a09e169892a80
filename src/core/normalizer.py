"""Edge-stage request normalization.

Rewrites ``/?url=...&format=...&width=...`` into the canonical proxy path
``/proxy/{encoded-url}/{operations}`` so that equivalent requests share one
cache key. The module is pure: no I/O and no module-level mutable state, so it
can run in a constrained edge sandbox.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from src.api.config import PROXY_PATH_PREFIX
from src.core.codec import HTTP_URL_PATTERN, encode_url
from src.core.errors import ClientInputError
from src.core.operations import CanonicalKey, TransformOperations


@dataclass(frozen=True)
class EdgeRequest:
    """Minimal view of an inbound request as seen by the edge stage."""

    uri: str
    query: tuple[tuple[str, str], ...] = ()
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def query_value(self, name: str) -> Optional[str]:
        for key, value in self.query:
            if key == name:
                return value
        return None


def normalize_request(request: EdgeRequest) -> EdgeRequest:
    """
    Rewrite a request into its canonical proxy form.

    Args:
        request: Inbound edge request

    Returns:
        Request whose uri is the canonical path and whose query is empty.
        Requests already under the proxy prefix are returned unchanged.

    Raises:
        ClientInputError: If ``url`` is missing or not an http(s) URL
    """
    if request.uri.startswith(PROXY_PATH_PREFIX):
        return request

    key = canonical_key_for(request)
    return EdgeRequest(uri=key.path, query=(), headers=request.headers)


def canonical_key_for(request: EdgeRequest) -> CanonicalKey:
    """Derive the canonical cache key from a raw edge request."""
    image_url = request.query_value("url")
    if not image_url:
        raise ClientInputError(
            "Missing required parameter: url", reason="missing required parameter"
        )

    if not HTTP_URL_PATTERN.match(image_url):
        raise ClientInputError(
            f"Invalid URL format: {image_url!r}", reason="invalid URL format"
        )

    operations = TransformOperations.from_pairs(
        ((key, value) for key, value in request.query if key != "url"),
        accept=request.header("accept"),
    )

    return CanonicalKey(
        encoded_url=encode_url(image_url), operations=operations.to_suffix()
    )
