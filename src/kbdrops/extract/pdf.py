"""PDF extraction via pypdf over fetched bytes."""

from __future__ import annotations

import io
import logging

import pypdf
from pypdf.errors import PdfReadError

from kbdrops.errors import ExtractionError
from kbdrops.extract.base import Extracted
from kbdrops.extract.fetch import fetch

logger = logging.getLogger(__name__)

PDF_MAX_BYTES = 25 * 1024 * 1024  # 25 MB
DEFAULT_TITLE = "PDF Document"


def extract_pdf(url: str) -> Extracted:
    """Fetch the PDF at *url* and extract its text."""
    result = fetch(url, max_bytes=PDF_MAX_BYTES)
    return pdf_from_bytes(result.body)


def pdf_from_bytes(data: bytes) -> Extracted:
    """Extract all page text from an in-memory PDF.

    Pages that yield no text (scanned images, etc.) are silently skipped.
    """
    try:
        reader = pypdf.PdfReader(io.BytesIO(data))
        parts: list[str] = []
        for page in reader.pages:
            stripped = (page.extract_text() or "").strip()
            if stripped:
                parts.append(stripped)
        title = _document_title(reader)
    except (PdfReadError, ValueError) as exc:
        raise ExtractionError(f"Could not read PDF: {exc}") from exc

    logger.debug("Extracted %d page(s) of text from PDF", len(parts))
    return Extracted(
        title=title,
        content="\n\n".join(parts),
        metadata={"pages": len(reader.pages)},
    )


def _document_title(reader: pypdf.PdfReader) -> str:
    info = reader.metadata
    title = (info.title if info is not None else None) or ""
    return str(title).strip() or DEFAULT_TITLE
