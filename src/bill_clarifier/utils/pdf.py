"""PDF processing utilities using PyMuPDF."""

from __future__ import annotations

import fitz  # PyMuPDF


def render_pdf_to_images(file_bytes: bytes, dpi: int = 200, max_pages: int | None = None) -> list[bytes]:
    """Render PDF pages to PNG image bytes at the given DPI."""
    doc = fitz.open(stream=file_bytes, filetype="pdf")
    images: list[bytes] = []
    zoom = dpi / 72
    matrix = fitz.Matrix(zoom, zoom)
    for index, page in enumerate(doc):
        if max_pages is not None and index >= max_pages:
            break
        pix = page.get_pixmap(matrix=matrix)
        images.append(pix.tobytes("png"))
    doc.close()
    return images


def detect_file_type(file_bytes: bytes) -> str:
    """Detect file type from magic bytes.

    Returns one of ``"pdf"``, ``"png"``, ``"jpeg"``, ``"webp"``, ``"tiff"``,
    or ``"unknown"``.
    """
    if file_bytes[:4] == b"%PDF":
        return "pdf"
    if file_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if file_bytes[:2] == b"\xff\xd8":
        return "jpeg"
    if file_bytes[:4] == b"RIFF" and file_bytes[8:12] == b"WEBP":
        return "webp"
    if file_bytes[:4] in (b"II*\x00", b"MM\x00*"):
        return "tiff"
    return "unknown"
