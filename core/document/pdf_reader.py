"""
PDF document reading for the annotation engine.

Wraps PyMuPDF: opens a document from bytes, reports its page count and
decodes single pages into immutable :class:`PageModel` handles.
"""

import logging
import threading
from typing import Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image

from core.errors import LoadError
from core.page.page_model import NativeWord, PageModel

logger = logging.getLogger(__name__)


class PDFDocumentReader:
    """
    Handles PDF document loading and page decoding.

    Decodes are issued from worker threads by the page cache, and PyMuPDF
    documents must not be used from several threads at once, so every
    access to ``self.doc`` goes through ``self._lock``.
    """

    def __init__(self):
        self.doc: Optional[fitz.Document] = None
        self.total_pages: int = 0
        self._lock = threading.Lock()

    def open_bytes(self, data: bytes) -> int:
        """
        Load a PDF document from memory.

        Args:
            data: Raw PDF bytes

        Returns:
            Number of pages

        Raises:
            LoadError: If PyMuPDF cannot open the data.
        """
        with self._lock:
            if self.doc is not None:
                self._close_unlocked()

            try:
                doc = fitz.open(stream=data, filetype="pdf")
            except Exception as e:
                raise LoadError(f"Failed to open PDF: {e}") from e

            if doc.needs_pass:
                doc.close()
                raise LoadError("PDF is encrypted and needs a password")

            self.doc = doc
            self.total_pages = doc.page_count

        logger.debug("Opened PDF: %d pages", self.total_pages)
        return self.total_pages

    def decode_page(self, page_number: int, scale: float = 2.0) -> PageModel:
        """
        Load one page, render it and collect its embedded words.

        Args:
            page_number: 1-based page number
            scale:       Resolution scale factor for the raster image

        Returns:
            Immutable page handle

        Raises:
            LoadError: If no document is open or the page cannot be decoded.
            IndexError: If *page_number* is outside the document.
        """
        with self._lock:
            if self.doc is None:
                raise LoadError("No document is open")
            if page_number < 1 or page_number > self.total_pages:
                raise IndexError(
                    f"Page {page_number} out of range "
                    f"(document has {self.total_pages} pages)"
                )

            try:
                page = self.doc.load_page(page_number - 1)
                rect = page.rect
                image = self._render(page, scale)
                native = self._native_words(page)
            except Exception as e:
                raise LoadError(f"Failed to decode page {page_number}: {e}") from e

        logger.debug(
            "Decoded page %d: %.0fx%.0f pt, %d native words",
            page_number,
            rect.width,
            rect.height,
            len(native),
        )
        return PageModel(
            page_number=page_number,
            width=rect.width,
            height=rect.height,
            scale=scale,
            image=image,
            native_words=native,
        )

    @staticmethod
    def _render(page: fitz.Page, scale: float) -> Image.Image:
        mat = fitz.Matrix(scale, scale)
        pix = page.get_pixmap(matrix=mat, alpha=False)
        return Image.frombytes("RGB", [pix.width, pix.height], pix.samples)

    @staticmethod
    def _native_words(page: fitz.Page) -> Tuple[NativeWord, ...]:
        # "words" rows: x0, y0, x1, y1, text, block_no, line_no, word_no
        rows = page.get_text("words", sort=True)
        return tuple((r[0], r[1], r[2], r[3], r[4]) for r in rows)

    def close_document(self) -> None:
        """Close the current PDF document and clear all state."""
        with self._lock:
            self._close_unlocked()

    def _close_unlocked(self) -> None:
        if self.doc is not None:
            self.doc.close()
            self.doc = None
        self.total_pages = 0

    def is_loaded(self) -> bool:
        """Check if a document is currently loaded."""
        return self.doc is not None

    def get_page_count(self) -> int:
        """Get the total number of pages."""
        return self.total_pages

    def __enter__(self):
        """Context manager support."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close document on context exit."""
        self.close_document()
        return False
