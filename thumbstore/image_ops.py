"""Thumbnail transform built on Pillow.

The transform is CPU bound and synchronous: raw image bytes in, JPEG
thumbnail bytes out. It never runs on the event loop directly; the
service hands it to :class:`thumbstore.workers.TransformPool`.
"""

from __future__ import annotations

from io import BytesIO

from PIL import Image, ImageOps  # type: ignore[import]

DEFAULT_SIZE = 100
DEFAULT_QUALITY = 75


class TransformError(Exception):
    """Raised when an image cannot be turned into a thumbnail.

    Attributes:
        message: Description of the last failure reported by Pillow.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _target_size(width: int, height: int, size: int) -> tuple[int, int]:
    """Scale (width, height) to fit a ``size`` x ``size`` box."""
    scale = size / max(width, height)
    return max(1, round(width * scale)), max(1, round(height * scale))


class Thumbnailer:
    """Resize images to a fixed bounding box and re-encode them as JPEG.

    Images are scaled up or down so that their largest dimension equals
    ``size``; the aspect ratio is kept and EXIF orientation applied first.
    The output only depends on the input bytes and the two settings.

    Args:
        size: Edge of the bounding box in pixels.
        quality: JPEG quality (1-95).
    """

    def __init__(self, size: int = DEFAULT_SIZE, quality: int = DEFAULT_QUALITY) -> None:
        if size < 1:
            raise ValueError("thumbnail size must be positive")
        self.size = size
        self.quality = quality

    def transform(self, data: bytes) -> bytes:
        try:
            with Image.open(BytesIO(data)) as img:
                img = ImageOps.exif_transpose(img)
                if img.mode != "RGB":
                    img = img.convert("RGB")
                img = img.resize(_target_size(img.width, img.height, self.size), Image.Resampling.LANCZOS)
                buffer = BytesIO()
                img.save(buffer, format="JPEG", quality=self.quality)
        # UnidentifiedImageError and truncated files are OSErrors
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise TransformError(f"thumbnail failed: {exc}") from exc
        return buffer.getvalue()

