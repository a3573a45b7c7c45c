"""
Abstract base class for text recognizers.

Provides a unified interface so the orchestrator can swap between the
PDF's embedded text and OCR backends.
"""

from abc import ABC, abstractmethod
from typing import List, Pattern

from core.page.models import TextSource, Word
from core.page.page_model import PageModel


class RecognitionError(RuntimeError):
    """Text recognition failed for one page."""


class BaseRecognizer(ABC):
    """
    Common interface for everything that turns a page into Words.

    ``recognize`` is blocking; the orchestrator calls it from a worker
    thread.  Implementations raise :class:`RecognitionError` on failure
    and return an empty list for pages that simply have no text.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable recognizer identifier."""

    @abstractmethod
    def recognize(self, page: PageModel, tokenizer: Pattern[str]) -> List[Word]:
        """
        Produce the words of *page*.

        Args:
            page:      Decoded page handle.
            tokenizer: Pattern used to segment recognised text into words.

        Returns:
            Words in reading order, bboxes in PDF points.
        """

    def source_for(self, page: PageModel) -> TextSource:
        """Which :class:`TextSource` a layer built for *page* reports."""
        return TextSource.OCR

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
