"""
Text extraction for uploaded ID documents.

Two methods:
  "pdf" - native text layer of a PDF (pypdf)
  "ocr" - Tesseract over a binarised image; PDFs are rasterised first (pdf2image)
"""
from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pypdf
import pytesseract
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image, UnidentifiedImageError

log = logging.getLogger("idcheck.extract")

OCR_TIMEOUT_SECONDS = 60
OTSU_BIAS = 10
FIXED_THRESHOLD = 140
PDF_RASTER_DPI = 288  # 4x the 72 dpi PDF user space
CHAR_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-/.:,'() "
TESSERACT_CONFIG = f'--oem 1 --psm 6 -c tessedit_char_whitelist="{CHAR_WHITELIST}"'

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
PDF_EXTENSIONS = {".pdf"}
METHODS = ("pdf", "ocr")


class ExtractionError(Exception):
    pass


class UnsupportedDocumentError(ExtractionError):
    pass


@dataclass
class ExtractedDocument:
    text: str
    page_count: int
    debug: List[Dict] = field(default_factory=list)


def document_kind(filename: str = "", content_type: str = "") -> Optional[str]:
    """'pdf', 'image' or None, from the content type first and then the extension."""
    content_type = (content_type or "").lower()
    if content_type == "application/pdf":
        return "pdf"
    if content_type in ("image/jpeg", "image/png", "image/jpg"):
        return "image"
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in PDF_EXTENSIONS:
        return "pdf"
    if ext in IMAGE_EXTENSIONS:
        return "image"
    return None


def otsu_threshold(image: Image.Image) -> int:
    """Otsu's threshold over the 256-bin histogram of a grayscale image."""
    histogram = image.histogram()[:256]
    total = sum(histogram)
    if not total:
        raise ValueError("empty image")
    weighted_sum = sum(i * count for i, count in enumerate(histogram))

    sum_b = 0.0
    w_b = 0
    best_variance = 0.0
    threshold = 0
    for t in range(256):
        w_b += histogram[t]
        if w_b == 0:
            continue
        w_f = total - w_b
        if w_f == 0:
            break
        sum_b += t * histogram[t]
        m_b = sum_b / w_b
        m_f = (weighted_sum - sum_b) / w_f
        variance = w_b * w_f * (m_b - m_f) ** 2
        if variance > best_variance:
            best_variance = variance
            threshold = t
    return threshold


def binarize(image: Image.Image, threshold: int) -> Image.Image:
    gray = image if image.mode == "L" else image.convert("L")
    return gray.point(lambda v: 0 if v < threshold else 255)


def preprocess_image(image: Image.Image) -> Image.Image:
    """
    Grayscale, then Otsu threshold with a small bias towards black so thin
    strokes survive. Falls back to a fixed cut on the plain RGB average.
    """
    try:
        gray = image.convert("L")
        return binarize(gray, otsu_threshold(gray) + OTSU_BIAS)
    except (ValueError, OSError) as exc:
        log.warning("Adaptive threshold failed, using fixed threshold", extra={"error": repr(exc)})
        rgb = image.convert("RGB")
        average = rgb.convert("L", (1 / 3, 1 / 3, 1 / 3, 0))
        return average.point(lambda v: 255 if v > FIXED_THRESHOLD else 0)


def _tesseract(image: Image.Image) -> str:
    cmd = os.getenv("TESSERACT_CMD")
    if cmd:
        pytesseract.pytesseract.tesseract_cmd = cmd
    try:
        return pytesseract.image_to_string(
            image, lang="eng", config=TESSERACT_CONFIG, timeout=OCR_TIMEOUT_SECONDS
        )
    except pytesseract.TesseractNotFoundError as exc:
        raise ExtractionError("The OCR engine is not installed on this server.") from exc
    except pytesseract.TesseractError as exc:
        raise ExtractionError(f"OCR failed: {exc.message}") from exc
    except RuntimeError as exc:
        # pytesseract signals its timeout with a bare RuntimeError
        raise ExtractionError("OCR timed out") from exc


def extract_pdf_text(data: bytes) -> ExtractedDocument:
    try:
        reader = pypdf.PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except pypdf.errors.PyPdfError as exc:
        raise ExtractionError(f"Could not read PDF: {exc}") from exc
    return ExtractedDocument(text="\n".join(pages), page_count=len(pages))


def ocr_image(data: bytes) -> ExtractedDocument:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise UnsupportedDocumentError("The uploaded image could not be read.") from exc

    text = _tesseract(preprocess_image(image))
    return ExtractedDocument(text=text, page_count=1, debug=[{"page": 1, "text": text}])


def ocr_pdf(data: bytes) -> ExtractedDocument:
    try:
        pages = convert_from_bytes(data, dpi=PDF_RASTER_DPI)
    except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as exc:
        raise ExtractionError(f"Could not render PDF: {exc}") from exc
    chunks: List[str] = []
    debug: List[Dict] = []
    for number, page in enumerate(pages, start=1):
        try:
            text = _tesseract(binarize(page, FIXED_THRESHOLD))
        except ExtractionError as exc:
            log.warning("OCR failed for page", extra={"page": number, "error": repr(exc)})
            chunks.append(f"[Error processing page {number}]\n")
            continue
        chunks.append(text + "\n")
        debug.append({"page": number, "text": text})
    return ExtractedDocument(text="".join(chunks), page_count=len(pages), debug=debug)


def extract_text(data: bytes, filename: str = "", content_type: str = "", method: str = "ocr") -> ExtractedDocument:
    """Extract text from an uploaded PDF or image with the chosen method."""
    if method not in METHODS:
        raise ValueError(f"unknown extraction method {method!r}")
    kind = document_kind(filename, content_type)
    if kind is None:
        raise UnsupportedDocumentError("Unsupported file type. Please upload a PDF, JPG or PNG.")

    if method == "pdf":
        if kind != "pdf":
            raise UnsupportedDocumentError("Native text extraction only works on PDF files.")
        doc = extract_pdf_text(data)
    elif kind == "pdf":
        doc = ocr_pdf(data)
    else:
        doc = ocr_image(data)

    log.info("Extracted document text", extra={"method": method, "kind": kind, "pages": doc.page_count})
    return doc


__all__ = [
    "ExtractedDocument",
    "ExtractionError",
    "UnsupportedDocumentError",
    "document_kind",
    "otsu_threshold",
    "binarize",
    "preprocess_image",
    "extract_pdf_text",
    "ocr_image",
    "ocr_pdf",
    "extract_text",
    "METHODS",
]
