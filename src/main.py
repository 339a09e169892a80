"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from src.api.config import settings
from src.api.responses import error_response
from src.api.routes import proxy
from src.utils.metrics import configure_logging

logger = logging.getLogger(__name__)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Handle rate limit exceeded errors."""
    return error_response(429, "rate limit exceeded")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan events."""
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)
    logger.info("Starting application...")
    if settings.storage_enabled:
        logger.info(f"Durable storage enabled: s3://{settings.transformed_image_bucket}")
    else:
        logger.info("Durable storage disabled, serving transformed images inline only")

    yield

    logger.info("Shutting down application...")
    await proxy.edge_cache.clear_all()
    logger.info("Application shut down successfully")


app = FastAPI(
    title="Image Optimization Proxy",
    description="On-demand resizing and reformatting of externally hosted images",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = proxy.limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)  # type: ignore[arg-type]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(proxy.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
