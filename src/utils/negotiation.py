"""Content negotiation helpers."""

from typing import Optional


def negotiate_format(accept: Optional[str]) -> str:
    """
    Resolve ``format=auto`` from an Accept header.

    Priority:
    1. avif, if mentioned anywhere in the header
    2. webp, if mentioned
    3. jpeg

    Args:
        accept: Raw Accept header value, or None

    Returns:
        Concrete output format
    """
    accept_lower = (accept or "").lower()
    if "avif" in accept_lower:
        return "avif"
    if "webp" in accept_lower:
        return "webp"
    return "jpeg"
