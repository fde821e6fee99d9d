import io
import logging
import os
from typing import Optional, Tuple

from PIL import Image, ImageOps

LOGGER = logging.getLogger("artshelf.thumbnails")

THUMBNAIL_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp"}
VIDEO_EXTENSIONS = {".mp4", ".webm", ".mkv", ".mov"}

THUMBNAIL_SIZE = (400, 600)


def is_image_file(path: str) -> bool:
    _, ext = os.path.splitext(path)
    return ext.lower() in THUMBNAIL_EXTENSIONS


def is_video_file(path: str) -> bool:
    _, ext = os.path.splitext(path)
    return ext.lower() in VIDEO_EXTENSIONS


def make_thumbnail(path: str, size: Tuple[int, int] = THUMBNAIL_SIZE, quality: int = 80) -> Optional[bytes]:
    """Return JPEG bytes of ``path`` cropped to fill ``size``, or None.

    None means the caller should show the original file instead.
    """
    if not is_image_file(path) or not os.path.isfile(path):
        return None
    try:
        with Image.open(path) as img:
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")
            fitted = ImageOps.fit(img, size, method=Image.LANCZOS, centering=(0.5, 0.5))
            buf = io.BytesIO()
            fitted.save(buf, format="JPEG", quality=quality)
            return buf.getvalue()
    except (OSError, ValueError) as exc:
        LOGGER.warning("Thumbnail failed for %s: %s", path, exc)
        return None
