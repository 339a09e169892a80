"""Persistence of transformed images and the oversize policy.

Outcomes:

- ``PERSISTED_INLINE``: stored, and small enough to return in this response.
- ``PERSISTED_REDIRECT``: stored, too big to return; client is redirected to
  the canonical path so the stored copy is served instead.
- ``PERSIST_FAILED_INLINE``: not stored (storage disabled or the write failed)
  but small enough to return.
- ``REJECTED_TOO_BIG``: not stored and too big to return.
"""

import logging
from enum import Enum
from typing import Optional

from src.core.codec import encode_metadata_value
from src.core.errors import PersistenceError
from src.core.operations import CanonicalKey
from src.core.storage import S3ObjectStore
from src.core.transformer import TransformedImage
from src.utils.metrics import ServerTiming

logger = logging.getLogger(__name__)


class CacheOutcome(str, Enum):
    """Terminal states of the oversize policy."""

    PERSISTED_INLINE = "persisted-inline"
    PERSISTED_REDIRECT = "persisted-redirect"
    PERSIST_FAILED_INLINE = "persist-failed-inline"
    REJECTED_TOO_BIG = "rejected-too-big"


class CacheWriter:
    """Writes transformed images to the durable store and picks the delivery mode."""

    def __init__(
        self,
        store: Optional[S3ObjectStore],
        max_output_size: int = 4700000,
        cache_control: str = "max-age=31622400",
    ):
        """Initialize writer; a None store disables persistence."""
        self.store = store
        self.max_output_size = max_output_size
        self.cache_control = cache_control

    async def write(
        self,
        key: CanonicalKey,
        source_url: str,
        artifact: TransformedImage,
        timing: ServerTiming,
    ) -> CacheOutcome:
        """
        Persist an artifact when storage is enabled and decide how to deliver it.

        Persistence failures are logged and never raised.

        Args:
            key: Canonical key of the request
            source_url: Decoded source URL, recorded as object metadata
            artifact: Transformed image
            timing: Receives the ``img-upload`` phase on a successful write

        Returns:
            Delivery outcome
        """
        too_big = artifact.byte_length > self.max_output_size

        if self.store is not None:
            try:
                with timing.phase("img-upload"):
                    await self.store.put(
                        key.object_key,
                        artifact.body,
                        content_type=artifact.content_type,
                        cache_control=self.cache_control,
                        metadata={
                            "original-url-base64": encode_metadata_value(source_url),
                            "transformations": key.operations,
                        },
                    )
            except PersistenceError as e:
                logger.error(f"Could not upload transformed image: {e}", exc_info=True)
            else:
                if too_big:
                    logger.info(
                        f"Output {artifact.byte_length} bytes exceeds "
                        f"{self.max_output_size}, redirecting to {key.path}"
                    )
                    return CacheOutcome.PERSISTED_REDIRECT
                return CacheOutcome.PERSISTED_INLINE

        if too_big:
            logger.error(
                f"Output {artifact.byte_length} bytes exceeds {self.max_output_size} "
                f"and could not be stored"
            )
            return CacheOutcome.REJECTED_TOO_BIG

        return CacheOutcome.PERSIST_FAILED_INLINE
