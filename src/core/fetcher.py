"""External image fetching with size, type and timeout limits."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from src.api.config import ACCEPTED_IMAGE_TYPES
from src.core.errors import FetchFailureKind, UpstreamFetchError
from src.core.guard import OriginGuard

logger = logging.getLogger(__name__)


@dataclass
class FetchedImage:
    """Origin resource held for the duration of one request."""

    body: bytes
    content_type: str

    @property
    def byte_length(self) -> int:
        return len(self.body)


def media_type(content_type: Optional[str]) -> str:
    """Strip parameters from a Content-Type header value."""
    return (content_type or "").split(";", 1)[0].strip().lower()


class ImageFetcher:
    """Fetches approved image URLs over HTTP(S)."""

    def __init__(
        self,
        guard: OriginGuard,
        timeout_seconds: float = 10.0,
        max_file_size: int = 52428800,
        max_redirects: int = 5,
        revalidate_redirects: bool = True,
        user_agent: str = "Image-Optimization-Proxy/1.0",
    ):
        """Initialize fetcher with limits and the guard used for every hop."""
        self.guard = guard
        self.timeout_seconds = timeout_seconds
        self.max_file_size = max_file_size
        self.max_redirects = max_redirects
        self.revalidate_redirects = revalidate_redirects
        self.user_agent = user_agent

    async def fetch(self, url: str) -> FetchedImage:
        """
        Validate and fetch an external image.

        The timeout budget covers the origin check, every redirect hop and the
        body transfer; on expiry the in-flight work is aborted.

        Args:
            url: Absolute http(s) URL

        Returns:
            Fetched image bytes and declared media type

        Raises:
            ClientInputError: If the URL cannot be parsed
            SecurityRejection: If the URL or a redirect target is not allowed
            UpstreamFetchError: On timeout, bad status, wrong type or size
        """
        try:
            return await asyncio.wait_for(self._fetch(url), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamFetchError(
                FetchFailureKind.TIMEOUT,
                f"Timeout fetching {url} after {self.timeout_seconds}s: {e!r}",
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamFetchError(
                FetchFailureKind.FETCH_FAILED, f"Transport error fetching {url}: {e!r}"
            )

    async def _fetch(self, url: str) -> FetchedImage:
        await self.guard.check(url)

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=False,
            headers={"User-Agent": self.user_agent},
        ) as client:
            current_url = url
            for _hop in range(self.max_redirects + 1):
                request = client.build_request("GET", current_url)
                response = await client.send(request, stream=True)
                try:
                    if response.is_redirect:
                        next_request = response.next_request
                        if next_request is None:
                            raise UpstreamFetchError(
                                FetchFailureKind.FETCH_FAILED,
                                f"Redirect without Location from {current_url}",
                                upstream_status=response.status_code,
                            )
                        current_url = str(next_request.url)
                        logger.info(f"Following redirect to {current_url}")
                        if self.revalidate_redirects:
                            await self.guard.check(current_url)
                        continue

                    return await self._read_image(current_url, response)
                finally:
                    await response.aclose()

        raise UpstreamFetchError(
            FetchFailureKind.FETCH_FAILED,
            f"Too many redirects (>{self.max_redirects}) fetching {url}",
        )

    async def _read_image(self, url: str, response: httpx.Response) -> FetchedImage:
        """Validate status, type and size, then read the body."""
        if not response.is_success:
            raise UpstreamFetchError(
                FetchFailureKind.FETCH_FAILED,
                f"HTTP {response.status_code} from {url}",
                upstream_status=response.status_code,
            )

        content_type = response.headers.get("content-type")
        if media_type(content_type) not in ACCEPTED_IMAGE_TYPES:
            raise UpstreamFetchError(
                FetchFailureKind.UNSUPPORTED_MEDIA_TYPE,
                f"Invalid content type from {url}: {content_type!r}",
                upstream_status=response.status_code,
            )

        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > self.max_file_size:
                raise UpstreamFetchError(
                    FetchFailureKind.TOO_LARGE,
                    f"Declared size {content_length} exceeds {self.max_file_size} bytes",
                )

        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > self.max_file_size:
                raise UpstreamFetchError(
                    FetchFailureKind.TOO_LARGE,
                    f"Body from {url} exceeds {self.max_file_size} bytes",
                )
            chunks.append(chunk)

        logger.info(f"Fetched {received} bytes ({media_type(content_type)}) from {url}")
        return FetchedImage(body=b"".join(chunks), content_type=media_type(content_type))
