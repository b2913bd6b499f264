import io

import pytest
from PIL import Image

from core.idcheck import extract


def _two_tone(mode="L"):
    image = Image.new("L", (20, 10), color=200)
    image.paste(50, (0, 0, 10, 10))
    return image if mode == "L" else image.convert(mode)


def _png_bytes(image):
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.parametrize(
    "filename,content_type,expected",
    [
        ("id.pdf", "", "pdf"),
        ("id.PNG", "", "image"),
        ("id.jpeg", "", "image"),
        ("upload", "application/pdf", "pdf"),
        ("upload", "image/jpeg", "image"),
        ("id.gif", "image/gif", None),
        ("", "", None),
    ],
)
def test_document_kind(filename, content_type, expected):
    assert extract.document_kind(filename, content_type) == expected


def test_otsu_threshold_splits_two_tones():
    threshold = extract.otsu_threshold(_two_tone())
    assert 50 <= threshold < 200


def test_binarize_gives_black_and_white():
    image = _two_tone()
    result = extract.binarize(image, extract.otsu_threshold(image) + 1)
    assert result.mode == "L"
    assert result.getextrema() == (0, 255)
    assert result.getpixel((0, 0)) == 0
    assert result.getpixel((15, 5)) == 255


def test_preprocess_image_accepts_rgb():
    result = extract.preprocess_image(_two_tone("RGB"))
    assert result.mode == "L"
    assert set(result.getdata()) <= {0, 255}


def test_extract_text_rejects_unknown_method():
    with pytest.raises(ValueError):
        extract.extract_text(b"data", filename="id.png", method="magic")


def test_extract_text_rejects_unsupported_type():
    with pytest.raises(extract.UnsupportedDocumentError):
        extract.extract_text(b"GIF89a", filename="id.gif")


def test_pdf_method_needs_a_pdf():
    with pytest.raises(extract.UnsupportedDocumentError):
        extract.extract_text(_png_bytes(_two_tone()), filename="id.png", method="pdf")


def test_extract_pdf_text_rejects_garbage():
    with pytest.raises(extract.ExtractionError):
        extract.extract_pdf_text(b"this is not a pdf")


def test_ocr_image_rejects_unreadable_bytes():
    with pytest.raises(extract.UnsupportedDocumentError):
        extract.ocr_image(b"not an image")


def test_ocr_image_runs_tesseract_on_binarised_image(monkeypatch):
    seen = []

    def fake_tesseract(image):
        seen.append(image.mode)
        return "REPUBLIC OF THE PHILIPPINES"

    monkeypatch.setattr(extract, "_tesseract", fake_tesseract)
    doc = extract.extract_text(_png_bytes(_two_tone("RGB")), filename="id.png", content_type="image/png")
    assert doc.text == "REPUBLIC OF THE PHILIPPINES"
    assert doc.page_count == 1
    assert seen == ["L"]


def test_ocr_pdf_keeps_going_after_a_failed_page(monkeypatch):
    pages = [_two_tone("RGB"), _two_tone("RGB")]
    monkeypatch.setattr(extract, "convert_from_bytes", lambda data, dpi: pages)
    calls = {"n": 0}

    def flaky_tesseract(image):
        calls["n"] += 1
        if calls["n"] == 2:
            raise extract.ExtractionError("OCR timed out")
        return "PAGE ONE"

    monkeypatch.setattr(extract, "_tesseract", flaky_tesseract)
    doc = extract.extract_text(b"%PDF-1.4", filename="id.pdf", method="ocr")
    assert doc.page_count == 2
    assert "PAGE ONE" in doc.text
    assert "[Error processing page 2]" in doc.text
    assert [d["page"] for d in doc.debug] == [1]
