"""Image proxy API endpoints."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.api.config import NO_OPERATIONS_TOKEN, Settings, settings
from src.api.models import CacheHealth, HealthResponse
from src.api.responses import error_response, from_exception, image_response, redirect_response
from src.core.cache import CachedImage, CacheService
from src.core.cache_writer import CacheOutcome, CacheWriter
from src.core.codec import decode_url
from src.core.errors import (
    ClientInputError,
    ImageProxyError,
    OutputTooLargeError,
    SecurityRejection,
)
from src.core.fetcher import ImageFetcher
from src.core.guard import OriginGuard
from src.core.normalizer import EdgeRequest, normalize_request
from src.core.operations import CanonicalKey, TransformOperations
from src.core.storage import S3ObjectStore
from src.core.transformer import ImageTransformer
from src.utils.metrics import ServerTiming

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

router = APIRouter()

edge_cache = CacheService(max_size_mb=settings.edge_cache_size_mb)


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def get_cache_service() -> CacheService:
    """Get the process-wide edge cache."""
    return edge_cache


def get_object_store(
    app_settings: Settings = Depends(get_settings),
) -> Optional[S3ObjectStore]:
    """Get durable store instance, or None when storage is disabled."""
    if not app_settings.transformed_image_bucket:
        return None
    return S3ObjectStore(
        bucket=app_settings.transformed_image_bucket,
        aws_access_key_id=app_settings.aws_access_key_id,
        aws_secret_access_key=app_settings.aws_secret_access_key,
        aws_region=app_settings.aws_region,
        endpoint_url=app_settings.s3_endpoint_url,
        timeout_seconds=app_settings.s3_timeout_seconds,
    )


def get_origin_guard() -> OriginGuard:
    """Get origin guard instance."""
    return OriginGuard()


def get_image_fetcher(
    app_settings: Settings = Depends(get_settings),
    guard: OriginGuard = Depends(get_origin_guard),
) -> ImageFetcher:
    """Get image fetcher instance."""
    return ImageFetcher(
        guard=guard,
        timeout_seconds=app_settings.fetch_timeout_seconds,
        max_file_size=app_settings.max_input_size_bytes,
        max_redirects=app_settings.fetch_max_redirects,
        revalidate_redirects=app_settings.fetch_revalidate_redirects,
        user_agent=app_settings.fetch_user_agent,
    )


def get_image_transformer() -> ImageTransformer:
    """Get image transformer instance."""
    return ImageTransformer()


def get_cache_writer(
    app_settings: Settings = Depends(get_settings),
    object_store: Optional[S3ObjectStore] = Depends(get_object_store),
) -> CacheWriter:
    """Get cache writer instance."""
    return CacheWriter(
        store=object_store,
        max_output_size=app_settings.max_output_size_bytes,
        cache_control=app_settings.transformed_image_cache_control,
    )


async def process_proxy_request(
    request: Request,
    key: CanonicalKey,
    cache_control: str,
    cache_service: CacheService,
    object_store: Optional[S3ObjectStore],
    fetcher: ImageFetcher,
    transformer: ImageTransformer,
    cache_writer: CacheWriter,
) -> Response:
    """Core origin logic: tiered lookup, then fetch, transform and persist."""
    # Clients may reach the canonical route directly; key on the validated
    # operations so reordered, unknown or auto suffixes share one variant.
    operations = TransformOperations.from_suffix(
        key.operations, accept=request.headers.get("accept")
    )
    key = CanonicalKey(encoded_url=key.encoded_url, operations=operations.to_suffix())

    cached = await cache_service.get(key.path)
    if cached:
        logger.info(f"Edge cache hit for {key.path}")
        return image_response(
            cached.body, cached.content_type, cached.cache_control, cache_status="edge-hit"
        )

    if object_store is not None:
        stored = await object_store.get(key.object_key)
        if stored:
            logger.info(f"Durable store hit for {key.object_key}")
            cached = CachedImage(
                body=stored.body,
                content_type=stored.content_type,
                cache_control=stored.cache_control or cache_control,
            )
            await cache_service.set(key.path, cached)
            return image_response(
                cached.body,
                cached.content_type,
                cached.cache_control,
                cache_status="store-hit",
            )

    logger.info(f"Cache miss for {key.path}, processing image")

    source_url = decode_url(key.encoded_url)

    timing = ServerTiming()

    with timing.phase("img-download"):
        fetched = await fetcher.fetch(source_url)

    with timing.phase("img-transform"):
        artifact = await transformer.transform(
            fetched.body, fetched.content_type, operations
        )

    outcome = await cache_writer.write(key, source_url, artifact, timing)

    if outcome is CacheOutcome.PERSISTED_REDIRECT:
        return redirect_response(key.path, timing.header())

    if outcome is CacheOutcome.REJECTED_TOO_BIG:
        raise OutputTooLargeError(
            f"Transformed image of {artifact.byte_length} bytes could not be stored"
        )

    await cache_service.set(
        key.path,
        CachedImage(
            body=artifact.body,
            content_type=artifact.content_type,
            cache_control=cache_control,
        ),
    )

    return image_response(
        artifact.body, artifact.content_type, cache_control, timing.header()
    )


async def serve_canonical(
    request: Request,
    key: CanonicalKey,
    app_settings: Settings,
    cache_service: CacheService,
    object_store: Optional[S3ObjectStore],
    fetcher: ImageFetcher,
    transformer: ImageTransformer,
    cache_writer: CacheWriter,
) -> Response:
    """Run the origin stage and convert every failure into a structured response."""
    try:
        response = await asyncio.wait_for(
            process_proxy_request(
                request=request,
                key=key,
                cache_control=app_settings.transformed_image_cache_control,
                cache_service=cache_service,
                object_store=object_store,
                fetcher=fetcher,
                transformer=transformer,
                cache_writer=cache_writer,
            ),
            timeout=app_settings.request_timeout_seconds,
        )
        return response

    except asyncio.TimeoutError:
        logger.error(f"Request timeout after {app_settings.request_timeout_seconds}s")
        return error_response(504, "request timeout")

    except SecurityRejection as e:
        logger.warning(f"Security rejection for {key.path}: {e}")
        return from_exception(e)

    except ImageProxyError as e:
        logger.error(f"{e.reason} for {key.path}: {e}")
        return from_exception(e)

    except Exception as e:
        logger.error(f"Unexpected error serving {key.path}: {e}", exc_info=True)
        return error_response(500, "internal server error")


@router.get("/")
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
@limiter.limit(f"{settings.rate_limit_per_hour}/hour")
async def edge_entry(
    request: Request,
    app_settings: Settings = Depends(get_settings),
    cache_service: CacheService = Depends(get_cache_service),
    object_store: Optional[S3ObjectStore] = Depends(get_object_store),
    fetcher: ImageFetcher = Depends(get_image_fetcher),
    transformer: ImageTransformer = Depends(get_image_transformer),
    cache_writer: CacheWriter = Depends(get_cache_writer),
) -> Response:
    """
    Normalize ``/?url=...&format=...&width=...`` and serve the canonical path.

    Query parameters: url (required), format, width, height, quality.
    """
    edge_request = EdgeRequest(
        uri=request.url.path,
        query=tuple(request.query_params.multi_items()),
        headers=dict(request.headers),
    )

    try:
        rewritten = normalize_request(edge_request)
        key = CanonicalKey.from_path(rewritten.uri)
    except ClientInputError as e:
        logger.info(f"Rejected edge request: {e}")
        return from_exception(e)

    logger.debug(f"Normalized request to {key.path}")

    return await serve_canonical(
        request, key, app_settings, cache_service, object_store, fetcher, transformer, cache_writer
    )


@router.get("/proxy/{encoded_url}/{operations}")
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
@limiter.limit(f"{settings.rate_limit_per_hour}/hour")
async def proxy_image(
    request: Request,
    encoded_url: str,
    operations: str,
    app_settings: Settings = Depends(get_settings),
    cache_service: CacheService = Depends(get_cache_service),
    object_store: Optional[S3ObjectStore] = Depends(get_object_store),
    fetcher: ImageFetcher = Depends(get_image_fetcher),
    transformer: ImageTransformer = Depends(get_image_transformer),
    cache_writer: CacheWriter = Depends(get_cache_writer),
) -> Response:
    """Serve a transformed image by canonical path."""
    key = CanonicalKey(encoded_url=encoded_url, operations=operations)
    return await serve_canonical(
        request, key, app_settings, cache_service, object_store, fetcher, transformer, cache_writer
    )


@router.get("/proxy/{encoded_url}")
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
@limiter.limit(f"{settings.rate_limit_per_hour}/hour")
async def proxy_original(
    request: Request,
    encoded_url: str,
    app_settings: Settings = Depends(get_settings),
    cache_service: CacheService = Depends(get_cache_service),
    object_store: Optional[S3ObjectStore] = Depends(get_object_store),
    fetcher: ImageFetcher = Depends(get_image_fetcher),
    transformer: ImageTransformer = Depends(get_image_transformer),
    cache_writer: CacheWriter = Depends(get_cache_writer),
) -> Response:
    """Serve an untransformed image by encoded URL."""
    key = CanonicalKey(encoded_url=encoded_url, operations=NO_OPERATIONS_TOKEN)
    return await serve_canonical(
        request, key, app_settings, cache_service, object_store, fetcher, transformer, cache_writer
    )


@router.get("/health")
async def health_check(
    app_settings: Settings = Depends(get_settings),
    cache_service: CacheService = Depends(get_cache_service),
) -> JSONResponse:
    """
    Health check endpoint.

    Reports edge cache occupancy and whether durable storage is configured.
    """
    overall_status = "healthy"

    try:
        cache_health = CacheHealth(
            status="healthy",
            size_mb=round(cache_service.l1_cache.current_size / (1024 * 1024), 2),
            entries=len(cache_service.l1_cache.cache),
        )
    except Exception as e:
        logger.error(f"Edge cache health check failed: {e}")
        cache_health = CacheHealth(status="unhealthy")
        overall_status = "degraded"

    health = HealthResponse(
        status=overall_status,
        edge_cache=cache_health,
        storage_enabled=app_settings.storage_enabled,
    )
    return JSONResponse(content=health.model_dump())
