from __future__ import annotations

import re

import fitz  # pymupdf
import pytesseract
from docx import Document
from PIL import Image, UnidentifiedImageError

from jobfit.errors import ExtractionError, Reason
from jobfit.logging_config import get_logger

logger = get_logger(__name__)


def _clean_text(t: str) -> str:
    t = t.replace("\x00", " ")
    t = re.sub(r"[ \t]+", " ", t)
    t = re.sub(r"\n{3,}", "\n\n", t)
    return t.strip()


def extract_text_from_pdf(file_path: str) -> str:
    try:
        with fitz.open(file_path) as doc:
            chunks = [page.get_text("text") for page in doc]
    except Exception as e:
        raise ExtractionError(f"Could not open PDF: {e}", Reason.CORRUPT_OR_UNSUPPORTED, backend="pdf", cause=e) from e

    text = _clean_text("\n".join(chunks))
    if not text:
        raise ExtractionError("PDF has no text layer", Reason.CORRUPT_OR_UNSUPPORTED, backend="pdf")
    logger.debug("PDF parsing extracted %d characters", len(text))
    return text


def extract_text_from_docx(file_path: str) -> str:
    try:
        doc = Document(file_path)
    except Exception as e:
        raise ExtractionError(f"Malformed DOCX: {e}", Reason.CORRUPT_OR_UNSUPPORTED, backend="docx", cause=e) from e

    parts = [p.text for p in doc.paragraphs]
    # include tables (basic)
    for table in doc.tables:
        for row in table.rows:
            parts.append(" | ".join(cell.text.strip() for cell in row.cells))
    return _clean_text("\n".join(parts))


def extract_text_from_image(file_path: str, lang: str = "eng") -> str:
    """Best-effort OCR. Output may be empty or noisy; callers judge whether it is usable."""
    try:
        with Image.open(file_path) as img:
            text = pytesseract.image_to_string(img, lang=lang)
    except (UnidentifiedImageError, OSError, pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
        raise ExtractionError(f"OCR failed: {e}", Reason.EXTRACTION_FAILED, backend="ocr", cause=e) from e
    return _clean_text(text or "")
