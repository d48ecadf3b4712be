"""Image normalization for transmission to the matching service."""

import asyncio
import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from eventlens.domain.errors import DecodeError


@dataclass
class ImageNormalizer:
    """Shrinks and re-encodes images to a bounded JPEG."""

    max_width: int = 600
    quality: int = 85

    async def normalize(self, image: bytes) -> bytes:
        """Return a JPEG no wider than ``max_width``, preserving aspect ratio."""
        return await asyncio.to_thread(self._normalize, image)

    def _normalize(self, image: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(image)) as source:
                source.load()
                oriented = ImageOps.exif_transpose(source)
                converted = oriented.convert("RGB")
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
        ) as exc:
            raise DecodeError("Source is not a valid image") from exc

        resized = _fit_width(converted, self.max_width)
        buffer = io.BytesIO()
        resized.save(buffer, format="JPEG", quality=self.quality)
        return buffer.getvalue()


def _fit_width(image: Image.Image, max_width: int) -> Image.Image:
    """Downscale to ``max_width`` if wider; never upscale."""
    width, height = image.size
    if width <= max_width:
        return image
    scaled_height = max(1, round(height * max_width / width))
    return image.resize((max_width, scaled_height), Image.Resampling.LANCZOS)
