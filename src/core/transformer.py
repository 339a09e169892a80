"""Image transformation: rasterization, orientation, bounded resize and re-encoding."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, Optional, Tuple

import cairosvg
from PIL import ExifTags, Image, ImageOps, ImageSequence, UnidentifiedImageError

from src.api.config import (
    ANIMATED_FORMATS,
    DEFAULT_QUALITY,
    FORMAT_CONTENT_TYPES,
    LOSSY_FORMATS,
)
from src.core.errors import TransformError
from src.core.operations import TransformOperations

logger = logging.getLogger(__name__)

# Pillow format name -> output format token
PIL_FORMATS: Dict[str, str] = {
    "JPEG": "jpeg",
    "PNG": "png",
    "WEBP": "webp",
    "AVIF": "avif",
    "GIF": "gif",
    "BMP": "bmp",
    "TIFF": "tiff",
}

SVG_CONTENT_TYPE = "image/svg+xml"


@dataclass
class TransformedImage:
    """Output of one transformation."""

    body: bytes
    content_type: str
    width: int = 0
    height: int = 0
    optimizations: list[str] = field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def byte_length(self) -> int:
        return len(self.body)


class ImageTransformer:
    """Applies orientation, resize, format and quality operations with Pillow."""

    async def transform(
        self, body: bytes, content_type: str, operations: TransformOperations
    ) -> TransformedImage:
        """
        Transform image bytes in a worker thread.

        Once started the transformation runs to completion or failure.

        Args:
            body: Source image bytes
            content_type: Declared media type of the source
            operations: Validated operations

        Returns:
            Transformed image

        Raises:
            TransformError: If the image cannot be decoded or encoded
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.transform_sync, body, content_type, operations
        )

    def transform_sync(
        self, body: bytes, content_type: str, operations: TransformOperations
    ) -> TransformedImage:
        """Synchronous transformation; see transform()."""
        start_time = time.time()

        if content_type == SVG_CONTENT_TYPE:
            body = self._rasterize_svg(body)

        optimizations: list[str] = []
        try:
            with Image.open(BytesIO(body)) as source:
                source_format = PIL_FORMATS.get(source.format or "", "png")
                output_format = operations.format or source_format
                if output_format == "svg":
                    raise TransformError(f"Cannot encode {source_format} as svg")

                animated = (
                    getattr(source, "n_frames", 1) > 1
                    and output_format in ANIMATED_FORMATS
                )

                if animated:
                    frames = []
                    durations = []
                    for frame in ImageSequence.Iterator(source):
                        durations.append(frame.info.get("duration", 100))
                        frames.append(
                            self._prepare_frame(frame.copy(), operations, optimizations)
                        )
                else:
                    durations = []
                    frames = [self._prepare_frame(source, operations, optimizations)]

                quality = self._select_quality(output_format, operations.quality)
                image_bytes = self._encode(
                    frames, output_format, quality, durations, source.info.get("loop", 0)
                )
        except TransformError:
            raise
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
            EOFError,
        ) as e:
            logger.error(f"Error transforming image: {e}")
            raise TransformError(f"Failed to transform image: {e}")

        if output_format != source_format:
            optimizations.append(output_format)

        processing_time_ms = int((time.time() - start_time) * 1000)
        width, height = frames[0].size

        logger.info(
            f"Transformed image: {source_format} -> {output_format}, "
            f"{width}x{height}, {len(image_bytes) / 1024:.1f}KB, "
            f"time: {processing_time_ms}ms"
        )

        return TransformedImage(
            body=image_bytes,
            content_type=self._content_type(output_format),
            width=width,
            height=height,
            optimizations=optimizations,
            processing_time_ms=processing_time_ms,
        )

    @staticmethod
    def _rasterize_svg(body: bytes) -> bytes:
        """Render a vector source to PNG at its intrinsic size."""
        try:
            # Safe mode: no external resources, no entity expansion.
            return cairosvg.svg2png(bytestring=body, unsafe=False)
        except (ValueError, SyntaxError, OSError) as e:
            logger.error(f"Error rasterizing SVG: {e}")
            raise TransformError(f"Failed to rasterize SVG: {e}")

    def _prepare_frame(
        self,
        image: Image.Image,
        operations: TransformOperations,
        optimizations: list[str],
    ) -> Image.Image:
        """Auto-orient, then resize within bounds."""
        orientation = image.getexif().get(ExifTags.Base.Orientation, 1)
        image = ImageOps.exif_transpose(image)
        if orientation != 1 and "rotated" not in optimizations:
            optimizations.append("rotated")

        if operations.resize_requested:
            target = self._fit_within(image.size, operations.width, operations.height)
            if target != image.size:
                logger.debug(
                    f"Resizing from {image.width}x{image.height} to {target[0]}x{target[1]}"
                )
                # Use LANCZOS for high-quality downsampling
                image = image.resize(target, Image.Resampling.LANCZOS)
                if "resized" not in optimizations:
                    optimizations.append("resized")

        return image

    @staticmethod
    def _fit_within(
        size: Tuple[int, int], width: Optional[int], height: Optional[int]
    ) -> Tuple[int, int]:
        """Contain within the bounds, keep aspect ratio, never enlarge."""
        source_width, source_height = size
        scale = 1.0
        if width is not None:
            scale = min(scale, width / source_width)
        if height is not None:
            scale = min(scale, height / source_height)

        if scale >= 1.0:
            return size

        return (
            max(1, round(source_width * scale)),
            max(1, round(source_height * scale)),
        )

    @staticmethod
    def _select_quality(output_format: str, quality: Optional[int]) -> Optional[int]:
        """Quality applies to lossy formats only."""
        if output_format not in LOSSY_FORMATS:
            return None
        return quality if quality is not None else DEFAULT_QUALITY[output_format]

    def _encode(
        self,
        frames: list[Image.Image],
        output_format: str,
        quality: Optional[int],
        durations: list[int],
        loop: object,
    ) -> bytes:
        """Encode frames with format-specific options."""
        buffer = BytesIO()
        frames = [self._convert_mode(frame, output_format) for frame in frames]

        save_kwargs: Dict[str, object] = {}
        if quality is not None:
            save_kwargs["quality"] = quality

        if output_format == "jpeg":
            save_kwargs["optimize"] = True
            save_kwargs["progressive"] = True
        elif output_format == "webp":
            save_kwargs["method"] = 4
        elif output_format == "png":
            save_kwargs["optimize"] = True

        if len(frames) > 1:
            save_kwargs["save_all"] = True
            save_kwargs["append_images"] = frames[1:]
            save_kwargs["duration"] = durations
            save_kwargs["loop"] = loop

        frames[0].save(buffer, format=output_format.upper(), **save_kwargs)
        return buffer.getvalue()

    @staticmethod
    def _convert_mode(image: Image.Image, output_format: str) -> Image.Image:
        """Convert pixel modes the target encoder cannot write."""
        has_alpha = "A" in image.getbands() or "transparency" in image.info

        if output_format == "jpeg":
            if has_alpha:
                image = image.convert("RGBA")
                background = Image.new("RGB", image.size, (255, 255, 255))
                background.paste(image, mask=image.split()[3])
                return background
            if image.mode not in ("RGB", "L", "CMYK"):
                return image.convert("RGB")
        elif output_format in ("webp", "avif"):
            if image.mode not in ("RGB", "RGBA"):
                return image.convert("RGBA" if has_alpha else "RGB")
        elif output_format == "png" and image.mode == "CMYK":
            return image.convert("RGB")

        return image

    @staticmethod
    def _content_type(output_format: str) -> str:
        if output_format in FORMAT_CONTENT_TYPES:
            return FORMAT_CONTENT_TYPES[output_format]
        return Image.MIME.get(output_format.upper(), "application/octet-stream")
