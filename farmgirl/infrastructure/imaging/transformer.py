"""
Image transformation using Pillow.

Decodes a source image, fits it inside the requested box without ever
enlarging it, and re-encodes it. Everything happens on in-memory buffers;
callers get bytes back only once encoding has fully finished.
"""

import io
import logging
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ...core.media.errors import DecodeFailureError, UnsupportedFormatError
from ...core.media.models import ImageFormat

logger = logging.getLogger(__name__)

# Pillow format names per canonical encoder
_PIL_FORMATS = {
    ImageFormat.WEBP: "WEBP",
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
}


def fit_inside(
    source_size: tuple[int, int],
    width: int,
    height: int,
) -> Optional[tuple[int, int]]:
    """
    Target size for "fit inside, no enlargement".

    A zero bound leaves that axis unconstrained. Returns None when the
    image already fits (including when both bounds are zero), meaning
    no resize should happen.
    """
    src_w, src_h = source_size
    scales = []
    if width:
        scales.append(width / src_w)
    if height:
        scales.append(height / src_h)
    if not scales:
        return None

    scale = min(scales)
    if scale >= 1:
        return None

    return (max(1, round(src_w * scale)), max(1, round(src_h * scale)))


class PillowImageTransformer:
    """ImageTransformer backed by Pillow."""

    def transform(
        self,
        source: bytes,
        width: int,
        height: int,
        format: ImageFormat,
        quality: int,
    ) -> bytes:
        pil_format = _PIL_FORMATS.get(format)
        if pil_format is None:
            raise UnsupportedFormatError(f"Unsupported format: {format}")

        image = self._decode(source)

        target = fit_inside(image.size, width, height)
        if target is not None:
            image = image.resize(target, Image.LANCZOS)

        image = self._convert_for(image, format)

        out = io.BytesIO()
        if format is ImageFormat.PNG:
            image.save(out, format=pil_format, optimize=True)
        else:
            image.save(out, format=pil_format, quality=quality)
        return out.getvalue()

    def _decode(self, source: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(source))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning("Could not decode source image", extra={"error": str(e)})
            raise DecodeFailureError(f"Could not decode image: {e}")

        # camera photos carry their rotation in EXIF; bake it in before
        # measuring dimensions
        return ImageOps.exif_transpose(image)

    def _convert_for(self, image: Image.Image, format: ImageFormat) -> Image.Image:
        has_alpha = "A" in image.getbands() or "transparency" in image.info
        if format is ImageFormat.JPEG:
            return image if image.mode in ("RGB", "L") else image.convert("RGB")
        if image.mode in ("RGB", "RGBA", "L", "LA") and format is ImageFormat.PNG:
            return image
        if image.mode in ("RGB", "RGBA"):
            return image
        return image.convert("RGBA" if has_alpha else "RGB")


def create_image_transformer() -> PillowImageTransformer:
    return PillowImageTransformer()
