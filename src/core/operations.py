"""Transformation operations and canonical cache keys."""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from src.api.config import (
    MAX_DIMENSION,
    MAX_QUALITY,
    NO_OPERATIONS_TOKEN,
    PROXY_PATH_PREFIX,
    SUPPORTED_FORMATS,
)
from src.core.errors import ClientInputError
from src.utils.negotiation import negotiate_format

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a string ("300px" -> 300), or None."""
    if not value:
        return None
    match = _LEADING_INT.match(value)
    if match is None:
        return None
    return int(match.group(1))


def coerce_dimension(value: Optional[str]) -> Optional[int]:
    """Accept a width/height in (0, MAX_DIMENSION], else None."""
    number = parse_int(value)
    if number is None or number <= 0 or number > MAX_DIMENSION:
        return None
    return number


def coerce_quality(value: Optional[str]) -> Optional[int]:
    """Accept a positive quality, clamped to MAX_QUALITY, else None."""
    number = parse_int(value)
    if number is None or number <= 0:
        return None
    return min(number, MAX_QUALITY)


def coerce_format(value: Optional[str], accept: Optional[str]) -> Optional[str]:
    """Accept a supported format, resolving ``auto`` against the Accept header."""
    if not value:
        return None
    fmt = value.lower()
    if fmt not in SUPPORTED_FORMATS:
        return None
    if fmt == "auto":
        return negotiate_format(accept)
    return fmt


@dataclass(frozen=True)
class TransformOperations:
    """Validated operation set, serialized in a fixed order."""

    format: Optional[str] = None
    quality: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[tuple[str, str]], accept: Optional[str] = None
    ) -> "TransformOperations":
        """
        Build operations from raw key/value pairs.

        Keys are lower-cased; unknown keys and invalid values are dropped. When
        a key repeats, the first valid occurrence wins.

        Args:
            pairs: Raw (key, value) pairs in request order
            accept: Accept header used to resolve ``format=auto``

        Returns:
            Validated operations
        """
        values: dict[str, object] = {}
        for raw_key, raw_value in pairs:
            key = raw_key.lower()
            if key in values:
                continue

            parsed: object = None
            if key == "format":
                parsed = coerce_format(raw_value, accept)
            elif key in ("width", "height"):
                parsed = coerce_dimension(raw_value)
            elif key == "quality":
                parsed = coerce_quality(raw_value)

            if parsed is not None:
                values[key] = parsed

        return cls(**values)  # type: ignore[arg-type]

    @classmethod
    def from_suffix(
        cls, suffix: str, accept: Optional[str] = None
    ) -> "TransformOperations":
        """Parse an operations path segment such as ``format=webp,width=300``."""
        if not suffix or suffix == NO_OPERATIONS_TOKEN:
            return cls()

        pairs = []
        for operation in suffix.split(","):
            key, _, value = operation.partition("=")
            pairs.append((key, value))
        return cls.from_pairs(pairs, accept)

    @property
    def is_empty(self) -> bool:
        return (
            self.format is None
            and self.quality is None
            and self.width is None
            and self.height is None
        )

    @property
    def resize_requested(self) -> bool:
        return self.width is not None or self.height is not None

    def to_suffix(self) -> str:
        """Serialize as ``format,quality,width,height`` or the no-op token."""
        if self.is_empty:
            return NO_OPERATIONS_TOKEN

        parts = []
        if self.format is not None:
            parts.append(f"format={self.format}")
        if self.quality is not None:
            parts.append(f"quality={self.quality}")
        if self.width is not None:
            parts.append(f"width={self.width}")
        if self.height is not None:
            parts.append(f"height={self.height}")
        return ",".join(parts)


@dataclass(frozen=True)
class CanonicalKey:
    """Deterministic identifier shared by the edge cache and the durable store."""

    encoded_url: str
    operations: str = NO_OPERATIONS_TOKEN

    @property
    def object_key(self) -> str:
        return f"{self.encoded_url}/{self.operations}"

    @property
    def path(self) -> str:
        return f"{PROXY_PATH_PREFIX}{self.object_key}"

    @classmethod
    def from_path(cls, path: str) -> "CanonicalKey":
        """
        Parse a ``/proxy/{encoded-url}/{operations}`` path.

        Raises:
            ClientInputError: If the path is not a proxy path
        """
        parts = [part for part in path.split("/") if part]
        if len(parts) < 2 or parts[0] != PROXY_PATH_PREFIX.strip("/"):
            raise ClientInputError(
                f"Not a proxy path: {path!r}", reason="invalid request path format"
            )
        operations = parts[2] if len(parts) > 2 else NO_OPERATIONS_TOKEN
        return cls(encoded_url=parts[1], operations=operations)
