"""
FishLog Backend — Catch Photo Transform
=========================================

What:  Turns an uploaded photo into the stored artifact: EXIF-rotated,
       scaled to fit MAX×MAX, re-encoded as WebP, with all metadata dropped.
Why:   Phone photos are large, sideways and carry GPS coordinates in EXIF;
       fishing spots are not something users mean to publish.
How:   Pillow. The work is CPU-bound, so the async entry point runs it in a
       worker thread to keep the event loop responsive.

Limits:
    Images with more than PHOTO_MAX_INPUT_PIXELS pixels are refused before
    any decoding. Smaller images are never upscaled.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from fishlog.config import settings

logger = logging.getLogger(__name__)


class ImageTransformError(Exception):
    """The upload is not a decodable image, or is too large to decode."""


@dataclass(frozen=True)
class TransformedImage:
    data: bytes
    width: int
    height: int
    content_type: str = "image/webp"
    extension: str = "webp"

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def transform_image(
    raw: bytes,
    max_dimension: Optional[int] = None,
    quality: Optional[int] = None,
    max_pixels: Optional[int] = None,
) -> TransformedImage:
    max_dimension = max_dimension or settings.photo_max_dimension
    quality = quality or settings.photo_webp_quality
    max_pixels = max_pixels or settings.photo_max_input_pixels

    try:
        with Image.open(io.BytesIO(raw)) as source:
            width, height = source.size
            if width * height > max_pixels:
                raise ImageTransformError(
                    f"Image is too large ({width}x{height}, limit {max_pixels} pixels)"
                )
            image = ImageOps.exif_transpose(source)
            image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            has_alpha = image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info)
            mode = "RGBA" if has_alpha else "RGB"
            image = image.convert(mode)
            # Fresh image: no EXIF, ICC or XMP carried over
            clean = Image.frombytes(mode, image.size, image.tobytes())

            buffer = io.BytesIO()
            clean.save(buffer, format="WEBP", quality=quality, method=4)
    except ImageTransformError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise ImageTransformError(f"Unsupported or unsafe image: {exc}") from exc
    except (OSError, ValueError) as exc:
        raise ImageTransformError(f"Could not process image: {exc}") from exc

    logger.debug("Transformed %d-byte upload into %dx%d WebP", len(raw), clean.width, clean.height)
    return TransformedImage(data=buffer.getvalue(), width=clean.width, height=clean.height)


async def transform_image_async(raw: bytes) -> TransformedImage:
    return await asyncio.to_thread(transform_image, raw)
