"""
OCR for receipt images and PDFs.
"""

import io
from pathlib import Path

from .errors import OcrError
from .utils import MIN_OCR_TEXT_LENGTH, PDF_EXTS


def _lazy_import_ocr_deps():
    """Lazy import heavy OCR dependencies."""
    global pytesseract, PIL_Image, fitz
    import importlib
    pytesseract = importlib.import_module("pytesseract")
    PIL_Image = importlib.import_module("PIL.Image")
    fitz = importlib.import_module("fitz")  # pymupdf


# Initialize on first use
pytesseract = None
PIL_Image = None
fitz = None


def _is_pdf(data: bytes, filename: str) -> bool:
    return data[:5] == b"%PDF-" or Path(filename).suffix.lower() in PDF_EXTS


def ocr_image_bytes(data: bytes) -> str:
    """OCR image bytes to text."""
    if pytesseract is None:
        _lazy_import_ocr_deps()

    img = PIL_Image.open(io.BytesIO(data))
    # Grayscale gives Tesseract steadier results on receipt paper
    if img.mode != "L":
        img = img.convert("L")
    return pytesseract.image_to_string(img)


def pdf_bytes_to_text(data: bytes) -> str:
    """
    Extract text from a PDF using PyMuPDF. Pages without a text layer are
    rendered at 2x and run through Tesseract.
    """
    if fitz is None:
        _lazy_import_ocr_deps()

    doc = fitz.open(stream=data, filetype="pdf")
    chunks = []
    try:
        for page in doc:
            text = page.get_text()
            if not text.strip():
                pix = page.get_pixmap(matrix=fitz.Matrix(2, 2), alpha=False)
                text = ocr_image_bytes(pix.tobytes("png"))
            chunks.append(text)
    finally:
        doc.close()
    return "\n".join(chunks)


def extract_text(data: bytes, filename: str = "") -> str:
    """
    Extract text from an uploaded receipt.

    Raises:
        OcrError: if the engine fails or the result is too short to be a
            receipt.
    """
    if not data:
        raise OcrError("Empty upload.")

    try:
        if _is_pdf(data, filename):
            text = pdf_bytes_to_text(data)
        else:
            text = ocr_image_bytes(data)
    except ImportError as e:
        raise OcrError(f"OCR engine is not installed: {e}") from e
    except Exception as e:
        raise OcrError(f"OCR failed for {filename or 'upload'}: {e}") from e

    text = (text or "").strip()
    if len(text) < MIN_OCR_TEXT_LENGTH:
        raise OcrError("No readable text found on receipt.")
    return text
