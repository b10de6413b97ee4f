"""Pre-upload image optimization.

Raster images are shrunk to fit inside 4096x4096 and re-encoded with fixed
quality settings before they are handed to the storage provider. Vector
images are never touched. `optimize_image` does not raise: on any failure
the caller gets the original bytes back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional

from PIL import Image, ImageSequence

logger = logging.getLogger(__name__)

MAX_DIMENSION = 4096
QUALITY = 85
SVG_CONTENT_TYPE = "image/svg+xml"


@dataclass(frozen=True)
class OptimizedAsset:
    data: bytes
    content_type: str
    optimized: bool
    original_bytes: int
    width: Optional[int] = None
    height: Optional[int] = None


def fit_inside(width: int, height: int, limit: int = MAX_DIMENSION) -> tuple[int, int]:
    """Target size for a "fit inside, no enlargement" resize."""
    if width <= limit and height <= limit:
        return width, height
    scale = min(limit / width, limit / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _encode(frames: List[Image.Image], fmt: str, durations: List[int], loop: int) -> bytes:
    img = frames[0]
    params: dict = {}
    if len(frames) > 1:
        params = {
            "save_all": True,
            "append_images": frames[1:],
            "duration": durations,
            "loop": loop,
        }

    buf = BytesIO()
    if fmt == "JPEG":
        if img.mode not in ("RGB", "L", "CMYK"):
            img = img.convert("RGB")
        img.save(buf, format="JPEG", quality=QUALITY, progressive=True)
    elif fmt == "PNG":
        img.save(buf, format="PNG", compress_level=9, optimize=True, **params)
    elif fmt == "WEBP":
        img.save(buf, format="WEBP", quality=QUALITY, **params)
    else:
        img.save(buf, format=fmt, **params)
    return buf.getvalue()


def _reencode(data: bytes) -> tuple[Optional[bytes], int, int]:
    """Return (new bytes or None for pass-through, width, height)."""
    with Image.open(BytesIO(data)) as img:
        fmt = (img.format or "").upper()
        width, height = img.size
        # Multi-picture JPEGs keep only the primary image
        animated = getattr(img, "is_animated", False) and fmt != "MPO"
        if fmt == "MPO":
            fmt = "JPEG"

        resized = fit_inside(width, height) != (width, height)

        frames: List[Image.Image] = []
        durations: List[int] = []
        if animated:
            for frame in ImageSequence.Iterator(img):
                durations.append(frame.info.get("duration", img.info.get("duration", 100)))
                frame = frame.copy()
                if resized:
                    frame.thumbnail((MAX_DIMENSION, MAX_DIMENSION), Image.LANCZOS)
                frames.append(frame)
        else:
            if resized:
                img.thumbnail((MAX_DIMENSION, MAX_DIMENSION), Image.LANCZOS)
            else:
                img.load()
            frames.append(img)

        width, height = frames[0].size
        if fmt in ("JPEG", "PNG", "WEBP") or resized:
            return _encode(frames, fmt, durations, img.info.get("loop", 0)), width, height
        return None, width, height


def optimize_image(data: bytes, content_type: str, enabled: bool = True) -> OptimizedAsset:
    """Resize and recompress `data` according to its detected format.

    Disabled, SVG and failed optimizations yield the input bytes unchanged.
    """
    original = OptimizedAsset(
        data=data,
        content_type=content_type,
        optimized=False,
        original_bytes=len(data),
    )
    if not enabled or (content_type or "").lower() == SVG_CONTENT_TYPE:
        return original

    try:
        encoded, width, height = _reencode(data)
    except Exception as e:
        logger.warning("Image optimization failed, using original: %s", e)
        return original

    if encoded is None:
        return OptimizedAsset(
            data=data,
            content_type=content_type,
            optimized=False,
            original_bytes=len(data),
            width=width,
            height=height,
        )

    return OptimizedAsset(
        data=encoded,
        content_type=content_type,
        optimized=True,
        original_bytes=len(data),
        width=width,
        height=height,
    )
