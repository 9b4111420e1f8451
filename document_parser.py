"""
OCR and PDF text extraction for uploaded receipts and statements.
"""

import logging
import os
from pathlib import Path

import fitz  # pymupdf
import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)

# Point pytesseract at a non-standard tesseract binary if needed.
TESSERACT_CMD = os.getenv("TESSERACT_CMD")
if TESSERACT_CMD:
    pytesseract.pytesseract.tesseract_cmd = TESSERACT_CMD

OCR_LANG = os.getenv("OCR_LANG", "eng")


class ExtractionError(Exception):
    """The OCR or PDF engine could not produce text."""


class UnsupportedDocumentError(ExtractionError):
    """The upload is neither an image nor a PDF."""


def extract_text_from_image(image_path) -> str:
    """OCR an image file to text."""
    try:
        with Image.open(Path(image_path)) as img:
            return pytesseract.image_to_string(img, lang=OCR_LANG)
    except Exception as exc:
        logger.error("OCR failed for %s: %s", image_path, exc, exc_info=True)
        raise ExtractionError("Failed to extract text from image") from exc


def extract_text_from_pdf(pdf_path) -> str:
    """Extract the text layer of every page of a PDF."""
    try:
        doc = fitz.open(Path(pdf_path).as_posix())
        try:
            chunks = [page.get_text() for page in doc]
        finally:
            doc.close()
    except Exception as exc:
        logger.error("PDF parsing failed for %s: %s", pdf_path, exc, exc_info=True)
        raise ExtractionError("Failed to extract text from PDF") from exc
    return "\n".join(chunks)


def extract_text(path, content_type: str) -> str:
    """Dispatch on the upload's MIME type."""
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return extract_text_from_image(path)
    if content_type == "application/pdf":
        return extract_text_from_pdf(path)
    raise UnsupportedDocumentError(f"Unsupported file type: {content_type or 'unknown'}")
