"""URL-safe encoding of source URLs into path segments."""

import base64
import binascii
import logging
import re

from src.core.errors import ClientInputError

logger = logging.getLogger(__name__)

HTTP_URL_PATTERN = re.compile(r"^https?://.+", re.IGNORECASE)


def encode_url(url: str) -> str:
    """
    Encode a URL as padding-free URL-safe base64.

    Args:
        url: Absolute source URL

    Returns:
        Token usable as a single path segment
    """
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode_url(token: str) -> str:
    """
    Decode a token produced by encode_url.

    Args:
        token: URL-safe base64 token, with or without padding

    Returns:
        Decoded source URL

    Raises:
        ClientInputError: If the token is not valid base64 or not an http(s) URL
    """
    padded = token + "=" * (-len(token) % 4)
    try:
        url = base64.b64decode(padded, altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ClientInputError(
            f"Undecodable URL token {token!r}: {e}", reason="failed to decode URL"
        )

    if not HTTP_URL_PATTERN.match(url):
        raise ClientInputError(
            f"Decoded value is not an http(s) URL: {url!r}",
            reason="failed to decode URL",
        )

    return url


def encode_metadata_value(url: str) -> str:
    """Standard base64 of a URL, safe for ASCII-only object metadata."""
    return base64.b64encode(url.encode("utf-8")).decode("ascii")
