"""Application configuration and constants."""

from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PROXY_PATH_PREFIX = "/proxy/"
NO_OPERATIONS_TOKEN = "original"

SUPPORTED_FORMATS = ("auto", "jpeg", "webp", "avif", "png", "gif", "svg")
LOSSY_FORMATS = ("jpeg", "webp", "avif")
ANIMATED_FORMATS = ("gif", "webp")

MAX_DIMENSION = 4000
MAX_QUALITY = 100

# Encoder defaults applied when a lossy format is requested without a quality
DEFAULT_QUALITY: Dict[str, int] = {
    "jpeg": 80,
    "webp": 80,
    "avif": 50,
}

FORMAT_CONTENT_TYPES: Dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "avif": "image/avif",
    "gif": "image/gif",
    "svg": "image/svg+xml",
}

ACCEPTED_IMAGE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/svg+xml",
        "image/avif",
        "image/bmp",
        "image/tiff",
    }
)


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None
    s3_timeout_seconds: int = 30

    transformed_image_bucket: Optional[str] = None
    transformed_image_cache_control: str = "max-age=31622400"

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_cors_origins: str = "*"

    max_input_size_bytes: int = 52428800
    max_output_size_bytes: int = 4700000
    fetch_timeout_seconds: float = 10.0
    fetch_max_redirects: int = 5
    fetch_revalidate_redirects: bool = True
    fetch_user_agent: str = "Image-Optimization-Proxy/1.0"
    request_timeout_seconds: float = 60.0

    edge_cache_size_mb: int = 500

    log_level: str = "INFO"
    log_format: str = "json"

    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 60
    rate_limit_per_hour: int = 1000

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if self.api_cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.api_cors_origins.split(",")]

    @property
    def storage_enabled(self) -> bool:
        """Whether transformed images are persisted to the durable store."""
        return bool(self.transformed_image_bucket)


settings = Settings()
