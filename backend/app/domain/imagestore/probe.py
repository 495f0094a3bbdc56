"""Image dimension probing."""

from __future__ import annotations

from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from ...infra.logging import get_logger

logger = get_logger(__name__)


def probe_dimensions(data: bytes) -> Tuple[Optional[int], Optional[int]]:
    """Return ``(width, height)`` read from the image header, or ``(None, None)``."""

    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as exc:
        logger.warning("image_probe_failed", extra={"error": str(exc)})
        return None, None
    return int(width), int(height)
