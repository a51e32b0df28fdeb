"""Image processing utilities for bill page images."""

from __future__ import annotations

import base64
import io

from PIL import Image

MIME_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "tiff": "image/tiff",
}


def normalize_image(image_bytes: bytes, max_side: int = 2400) -> bytes:
    """Convert to RGB PNG, downscaling so the longest side is at most *max_side*."""
    img = Image.open(io.BytesIO(image_bytes))
    if img.mode != "RGB":
        img = img.convert("RGB")
    if max(img.size) > max_side:
        img.thumbnail((max_side, max_side))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def stack_pages(page_images: list[bytes]) -> bytes:
    """Stack page images vertically into a single PNG."""
    pages = [Image.open(io.BytesIO(b)).convert("RGB") for b in page_images]
    width = max(p.width for p in pages)
    height = sum(p.height for p in pages)
    canvas = Image.new("RGB", (width, height), "white")
    offset = 0
    for page in pages:
        canvas.paste(page, (0, offset))
        offset += page.height
    buf = io.BytesIO()
    canvas.save(buf, format="PNG")
    return buf.getvalue()


def image_to_base64(image_bytes: bytes) -> str:
    """Encode raw image bytes to a Base64 string."""
    return base64.b64encode(image_bytes).decode("utf-8")


def get_image_dimensions(image_bytes: bytes) -> tuple[int, int]:
    """Return the ``(width, height)`` of an image."""
    img = Image.open(io.BytesIO(image_bytes))
    return img.size
