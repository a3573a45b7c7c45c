"""Tests for recognizer selection and the embedded-text recognizer."""

import pytest

from annotator.ocr import (
    AutoRecognizer,
    EmbeddedTextRecognizer,
    TesseractRecognizer,
    create_recognizer,
)
from annotator.ocr.tokenizer import DEFAULT_TOKENIZER
from core.document.pdf_reader import PDFDocumentReader
from core.page.models import TextSource


@pytest.fixture
def pages(make_pdf):
    """Page 1 has embedded text, page 2 is blank."""
    with PDFDocumentReader() as pdf:
        pdf.open_bytes(make_pdf(["Hello world, again", None]))
        yield pdf.decode_page(1, scale=1.0), pdf.decode_page(2, scale=1.0)


def test_embedded_recognizer_reads_pdf_words(pages):
    text_page, blank_page = pages
    rec = EmbeddedTextRecognizer()

    words = rec.recognize(text_page, DEFAULT_TOKENIZER)
    assert [w.text for w in words] == ["Hello", "world", ",", "again"]
    assert all(w.page_number == 1 for w in words)
    assert words[0].bbox[0] == pytest.approx(20.0, abs=1.0)
    assert rec.recognize(blank_page, DEFAULT_TOKENIZER) == []
    assert rec.source_for(text_page) is TextSource.EMBEDDED


def test_auto_recognizer_falls_back_to_ocr_for_image_pages(pages, recognizer):
    text_page, blank_page = pages
    auto = AutoRecognizer(ocr=recognizer)

    assert [w.text for w in auto.recognize(text_page, DEFAULT_TOKENIZER)][:2] == ["Hello", "world"]
    assert auto.source_for(text_page) is TextSource.EMBEDDED
    assert recognizer.calls == []

    assert [w.text for w in auto.recognize(blank_page, DEFAULT_TOKENIZER)] == ["ocr2", "text"]
    assert auto.source_for(blank_page) is TextSource.OCR
    assert recognizer.calls == [2]


def test_create_recognizer():
    assert isinstance(create_recognizer("embedded"), EmbeddedTextRecognizer)

    tess = create_recognizer("tesseract", language="fra", psm=4)
    assert isinstance(tess, TesseractRecognizer)
    assert (tess.language, tess.psm) == ("fra", 4)

    auto = create_recognizer()
    assert isinstance(auto, AutoRecognizer)
    assert isinstance(auto.ocr, TesseractRecognizer)

    with pytest.raises(ValueError):
        create_recognizer("easyocr")
