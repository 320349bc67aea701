"""Comic photo normalization before provider upload."""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageOps


_MAX_WIDTH = 2048
_JPEG_QUALITY = 85


@dataclass
class NormalizedImage:
    """Normalized image blob ready for a vision model payload."""

    image_bytes: bytes
    mime_type: str
    width: int
    height: int
    original_size_bytes: int
    final_size_bytes: int


def normalize_comic_image(data: bytes, max_width: int = _MAX_WIDTH, jpeg_quality: int = _JPEG_QUALITY) -> NormalizedImage:
    """Apply EXIF orientation, downscale to ``max_width`` and re-encode as JPEG."""

    with Image.open(io.BytesIO(data)) as source:
        image = ImageOps.exif_transpose(source).convert("RGB")
        if image.width > max_width:
            scale = max_width / float(image.width)
            image = image.resize((max_width, int(image.height * scale)), Image.Resampling.LANCZOS)

        output = io.BytesIO()
        image.save(output, format="JPEG", quality=jpeg_quality, optimize=True)

    payload = output.getvalue()
    return NormalizedImage(
        image_bytes=payload,
        mime_type="image/jpeg",
        width=image.width,
        height=image.height,
        original_size_bytes=len(data),
        final_size_bytes=len(payload),
    )
