"""API request and response models."""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str = Field(..., description="Stable, machine-readable failure reason")


class CacheHealth(BaseModel):
    """Edge cache occupancy."""

    status: str = Field(..., description="healthy or unhealthy")
    size_mb: float = Field(default=0.0, description="Current edge cache size in MB")
    entries: int = Field(default=0, description="Number of cached images")


class HealthResponse(BaseModel):
    """Health check result."""

    status: str = Field(..., description="healthy or degraded")
    edge_cache: CacheHealth
    storage_enabled: bool = Field(
        ..., description="Whether transformed images are persisted to the durable store"
    )
