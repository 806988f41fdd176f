"""Thumbnail generation for uploaded photos."""
import asyncio
import io
from typing import Optional

from PIL import Image as PILImage, ImageOps, UnidentifiedImageError

from coffee_chronicles.core.config import settings
from coffee_chronicles.core.exceptions import ImageProcessingException


class ThumbnailService:
    """Produces fixed-size, centre-cropped JPEG thumbnails."""

    content_type = "image/jpeg"

    def __init__(
        self,
        width: Optional[int] = None,
        height: Optional[int] = None,
        quality: Optional[int] = None,
    ):
        """
        Initialize thumbnail service.

        Args:
            width: Default thumbnail width
            height: Default thumbnail height
            quality: JPEG quality (1-100)
        """
        self.width = width or settings.thumbnail_width
        self.height = height or settings.thumbnail_height
        self.quality = quality or settings.thumbnail_quality

    async def resize(
        self,
        data: bytes,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> bytes:
        """
        Resize image bytes to cover ``width`` x ``height``, cropping the overflow.

        Runs in a worker thread so decoding does not block the event loop.

        Raises:
            ImageProcessingException: If the input cannot be decoded
        """
        return await asyncio.to_thread(
            self._resize_sync,
            data,
            width or self.width,
            height or self.height,
        )

    def _resize_sync(self, data: bytes, width: int, height: int) -> bytes:
        try:
            with PILImage.open(io.BytesIO(data)) as img:
                # Honour camera orientation before cropping
                img = ImageOps.exif_transpose(img)

                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")

                thumb = ImageOps.fit(
                    img,
                    (width, height),
                    method=PILImage.Resampling.LANCZOS,
                    centering=(0.5, 0.5),
                )

                output = io.BytesIO()
                thumb.save(
                    output,
                    "JPEG",
                    quality=self.quality,
                    optimize=True,
                    progressive=True,
                )
                return output.getvalue()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageProcessingException(f"Failed to generate thumbnail: {e}")
