"""Tests for the S3 object store."""

import pytest
from unittest.mock import AsyncMock, patch

from botocore.exceptions import ClientError

from src.core.errors import PersistenceError
from src.core.storage import S3ObjectStore


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestS3ObjectStore:
    """Test durable store reads and writes."""

    @pytest.mark.asyncio
    async def test_put_success(self) -> None:
        """Test objects are written with type, cache directive and metadata."""
        store = S3ObjectStore(bucket="transformed")

        with patch.object(store.session, "client") as mock_client:
            mock_s3 = AsyncMock()
            mock_client.return_value.__aenter__.return_value = mock_s3

            await store.put(
                "abc/width=300",
                b"image",
                content_type="image/webp",
                cache_control="max-age=31622400",
                metadata={"transformations": "width=300"},
            )

            mock_s3.put_object.assert_called_once_with(
                Bucket="transformed",
                Key="abc/width=300",
                Body=b"image",
                ContentType="image/webp",
                CacheControl="max-age=31622400",
                Metadata={"transformations": "width=300"},
            )

    @pytest.mark.asyncio
    async def test_put_failure(self) -> None:
        """Test write failures raise PersistenceError."""
        store = S3ObjectStore(bucket="transformed")

        with patch.object(store.session, "client") as mock_client:
            mock_s3 = AsyncMock()
            mock_client.return_value.__aenter__.return_value = mock_s3
            mock_s3.put_object.side_effect = client_error("AccessDenied", "PutObject")

            with pytest.raises(PersistenceError, match="Failed to store"):
                await store.put("k", b"x", "image/png", "max-age=1", {})

    @pytest.mark.asyncio
    async def test_get_success(self) -> None:
        """Test reading a stored object."""
        store = S3ObjectStore(bucket="transformed", endpoint_url="http://localhost:4566")

        with patch.object(store.session, "client") as mock_client:
            mock_s3 = AsyncMock()
            mock_client.return_value.__aenter__.return_value = mock_s3

            mock_body = AsyncMock()
            mock_body.read.return_value = b"image"
            mock_s3.get_object.return_value = {
                "Body": mock_body,
                "ContentType": "image/webp",
                "CacheControl": "max-age=60",
                "Metadata": {"transformations": "width=300"},
            }

            result = await store.get("abc/width=300")

            assert result is not None
            assert result.body == b"image"
            assert result.content_type == "image/webp"
            assert result.cache_control == "max-age=60"
            mock_s3.get_object.assert_called_once_with(Bucket="transformed", Key="abc/width=300")
            args, kwargs = mock_client.call_args
            assert args == ("s3",)
            assert kwargs["region_name"] == "us-east-1"
            assert kwargs["endpoint_url"] == "http://localhost:4566"
            assert kwargs["config"].read_timeout == 30

    @pytest.mark.asyncio
    async def test_get_missing_key(self) -> None:
        """Test missing keys are cache misses."""
        store = S3ObjectStore(bucket="transformed")

        with patch.object(store.session, "client") as mock_client:
            mock_s3 = AsyncMock()
            mock_client.return_value.__aenter__.return_value = mock_s3
            mock_s3.get_object.side_effect = client_error("NoSuchKey", "GetObject")

            assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_get_failure_is_miss(self) -> None:
        """Test read failures degrade to a miss."""
        store = S3ObjectStore(bucket="transformed")

        with patch.object(store.session, "client") as mock_client:
            mock_s3 = AsyncMock()
            mock_client.return_value.__aenter__.return_value = mock_s3
            mock_s3.get_object.side_effect = client_error("InternalError", "GetObject")

            assert await store.get("broken") is None
