"""
Recognizers that read the PDF's own text layer.

``EmbeddedTextRecognizer`` uses only the embedded text; ``AutoRecognizer``
falls back to OCR for image-only pages.
"""

import logging
from typing import List, Optional, Pattern

from core.page.models import TextSource, Word
from core.page.page_model import PageModel
from core.page.text_layer import page_words

from .base_engine import BaseRecognizer
from .tesseract_engine import TesseractRecognizer

logger = logging.getLogger(__name__)


class EmbeddedTextRecognizer(BaseRecognizer):
    """Words from the page's embedded text; empty for scanned pages."""

    @property
    def name(self) -> str:
        return "embedded"

    def recognize(self, page: PageModel, tokenizer: Pattern[str]) -> List[Word]:
        return page_words(page, tokenizer)

    def source_for(self, page: PageModel) -> TextSource:
        return TextSource.EMBEDDED


class AutoRecognizer(BaseRecognizer):
    """
    Embedded text when the page has any, OCR otherwise.

    Born-digital PDFs never pay for OCR; scanned pages still get a
    text layer.
    """

    def __init__(self, ocr: Optional[BaseRecognizer] = None):
        self.embedded = EmbeddedTextRecognizer()
        self.ocr = ocr or TesseractRecognizer()

    @property
    def name(self) -> str:
        return "auto"

    def _pick(self, page: PageModel) -> BaseRecognizer:
        return self.embedded if page.has_text else self.ocr

    def recognize(self, page: PageModel, tokenizer: Pattern[str]) -> List[Word]:
        backend = self._pick(page)
        logger.debug("Page %d: using %s text", page.page_number, backend.name)
        return backend.recognize(page, tokenizer)

    def source_for(self, page: PageModel) -> TextSource:
        return self._pick(page).source_for(page)

    def __repr__(self) -> str:
        return f"AutoRecognizer(ocr={self.ocr!r})"
