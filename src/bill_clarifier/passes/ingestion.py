"""Ingestion: turn uploaded bytes into one image for the extraction call."""
from __future__ import annotations

import structlog

from ..errors import UnsupportedFileError
from ..models.internal import IngestedImage
from ..utils.hashing import compute_file_hash
from ..utils.image import MIME_TYPES, image_to_base64, normalize_image, stack_pages
from ..utils.pdf import detect_file_type, render_pdf_to_images

logger = structlog.get_logger(__name__)

# Formats every supported vision model accepts as-is
PASSTHROUGH_TYPES = ("png", "jpeg", "webp")


def run_ingestion(
    file_bytes: bytes,
    dpi: int = 200,
    max_pages: int = 2,
    declared_mime_type: str | None = None,
) -> IngestedImage:
    """Normalize an uploaded bill into a single base64 image.

    Steps:
    1. Detect file type from magic bytes
    2. PDF: rasterize the first *max_pages* pages and stack them vertically
    3. PNG/JPEG/WebP: pass through with their own mime type
    4. TIFF: re-encode as PNG
    5. Anything else declared as ``image/*`` by the uploader: re-encode as
       PNG if Pillow can read it
    """
    file_type = detect_file_type(file_bytes)
    logger.info(
        "ingestion_file_type_detected",
        file_type=file_type,
        size_bytes=len(file_bytes),
        file_hash=compute_file_hash(file_bytes)[:16],
    )

    if file_type == "pdf":
        pages = render_pdf_to_images(file_bytes, dpi=dpi, max_pages=max_pages)
        if not pages:
            raise UnsupportedFileError("PDF has no pages")
        image = pages[0] if len(pages) == 1 else stack_pages(pages)
        logger.info("ingestion_pdf_rendered", page_count=len(pages), dpi=dpi)
        return IngestedImage(
            file_type=file_type,
            mime_type="image/png",
            image_base64=image_to_base64(image),
            page_count=len(pages),
        )

    if file_type in PASSTHROUGH_TYPES:
        return IngestedImage(
            file_type=file_type,
            mime_type=MIME_TYPES[file_type],
            image_base64=image_to_base64(file_bytes),
        )

    if file_type == "tiff":
        return IngestedImage(
            file_type=file_type,
            mime_type="image/png",
            image_base64=image_to_base64(normalize_image(file_bytes)),
        )

    if declared_mime_type and declared_mime_type.startswith("image/"):
        try:
            converted = normalize_image(file_bytes)
        except OSError as e:
            logger.warning(
                "ingestion_declared_image_unreadable",
                declared_mime_type=declared_mime_type,
                error=str(e),
            )
        else:
            return IngestedImage(
                file_type=declared_mime_type.removeprefix("image/"),
                mime_type="image/png",
                image_base64=image_to_base64(converted),
            )

    logger.warning("ingestion_unsupported_file_type", file_type=file_type)
    raise UnsupportedFileError(
        "Unsupported file type; upload a PDF, PNG, JPEG or WebP image"
    )
