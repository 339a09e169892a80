"""Durable object store for transformed images."""

import logging
from dataclasses import dataclass, field
from typing import Optional

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.core.errors import PersistenceError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


@dataclass
class StoredObject:
    """A transformed image as held by the durable store."""

    body: bytes
    content_type: str
    cache_control: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)


class S3ObjectStore:
    """S3-backed durable cache tier keyed by canonical object key."""

    def __init__(
        self,
        bucket: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        timeout_seconds: int = 30,
    ):
        """Initialize object store with AWS credentials."""
        self.bucket = bucket
        self.aws_region = aws_region
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self.session = aioboto3.Session(
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=aws_region,
        )

    def _client_config(self) -> dict[str, object]:
        client_config: dict[str, object] = {
            "region_name": self.aws_region,
            "config": Config(
                connect_timeout=self.timeout_seconds,
                read_timeout=self.timeout_seconds,
            ),
        }
        if self.endpoint_url:
            client_config["endpoint_url"] = self.endpoint_url
        return client_config

    async def put(
        self,
        key: str,
        body: bytes,
        content_type: str,
        cache_control: str,
        metadata: dict[str, str],
    ) -> None:
        """
        Persist an object.

        Args:
            key: Object key
            body: Object bytes
            content_type: Media type served with the object
            cache_control: Cache-Control served with the object
            metadata: ASCII-safe user metadata

        Raises:
            PersistenceError: If the write fails
        """
        try:
            async with self.session.client("s3", **self._client_config()) as s3_client:
                await s3_client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                    CacheControl=cache_control,
                    Metadata=metadata,
                )
        except (BotoCoreError, ClientError) as e:
            raise PersistenceError(f"Failed to store s3://{self.bucket}/{key}: {e}")

        logger.info(f"Stored s3://{self.bucket}/{key} ({len(body)} bytes)")

    async def get(self, key: str) -> Optional[StoredObject]:
        """
        Read an object, treating missing keys and read failures as misses.

        Args:
            key: Object key

        Returns:
            Stored object, or None
        """
        try:
            async with self.session.client("s3", **self._client_config()) as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket, Key=key)
                body: bytes = await response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in NOT_FOUND_CODES:
                logger.error(f"Error reading s3://{self.bucket}/{key}: {e}")
            return None
        except BotoCoreError as e:
            logger.error(f"Error reading s3://{self.bucket}/{key}: {e}")
            return None

        return StoredObject(
            body=body,
            content_type=response.get("ContentType", "application/octet-stream"),
            cache_control=response.get("CacheControl"),
            metadata=response.get("Metadata", {}),
        )
