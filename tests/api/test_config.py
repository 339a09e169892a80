"""Tests for configuration."""

from src.api.config import Settings


class TestSettings:
    """Test settings configuration."""

    def test_cors_origins_wildcard(self) -> None:
        """Test CORS origins with wildcard."""
        config = Settings(api_cors_origins="*")
        assert config.cors_origins_list == ["*"]

    def test_cors_origins_list(self) -> None:
        """Test CORS origins split on commas."""
        config = Settings(api_cors_origins="https://a.example, https://b.example")
        assert config.cors_origins_list == ["https://a.example", "https://b.example"]

    def test_storage_disabled_without_bucket(self) -> None:
        """Test storage is disabled when no bucket is configured."""
        config = Settings(transformed_image_bucket=None)
        assert config.storage_enabled is False

    def test_storage_enabled_with_bucket(self) -> None:
        """Test storage is enabled by a bucket name."""
        config = Settings(transformed_image_bucket="transformed-images")
        assert config.storage_enabled is True

    def test_limits_default(self) -> None:
        """Test default size and timeout ceilings."""
        config = Settings()
        assert config.max_input_size_bytes == 52428800
        assert config.max_output_size_bytes == 4700000
        assert config.fetch_timeout_seconds == 10.0
        assert config.transformed_image_cache_control == "max-age=31622400"
