"""Tests for content negotiation."""

from src.utils.negotiation import negotiate_format


class TestNegotiateFormat:
    """Test Accept-based format selection."""

    def test_avif_preferred(self) -> None:
        """Test avif wins when mentioned."""
        assert negotiate_format("image/avif,image/webp,image/apng,*/*;q=0.8") == "avif"

    def test_webp(self) -> None:
        """Test webp when avif is absent."""
        assert negotiate_format("image/webp,*/*") == "webp"

    def test_jpeg_fallback(self) -> None:
        """Test jpeg for generic Accept headers."""
        assert negotiate_format("*/*") == "jpeg"

    def test_missing_header(self) -> None:
        """Test jpeg when no header is sent."""
        assert negotiate_format(None) == "jpeg"
