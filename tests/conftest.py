"""
Shared fixtures: in-memory PDFs, instrumented readers and stand-in
recognizers so no ``tesseract`` binary is needed.
"""

import threading
import time
from collections import Counter
from typing import Dict, List, Optional, Pattern, Sequence

import fitz  # PyMuPDF
import pytest

from annotator.ocr.base_engine import BaseRecognizer, RecognitionError
from core.document.pdf_reader import PDFDocumentReader
from core.page.models import Word
from core.page.page_model import PageModel


def build_pdf(pages: Sequence[Optional[str]]) -> bytes:
    """One page per entry; ``None`` gives a blank (image-only) page."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page(width=300, height=200)
        if text:
            page.insert_text((20, 50), text, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


class CountingReader(PDFDocumentReader):
    """Reader that records how often the document is opened and pages decoded."""

    def __init__(self):
        super().__init__()
        self.open_calls = 0
        self.decode_calls: Counter = Counter()
        self._count_lock = threading.Lock()

    def open_bytes(self, data: bytes) -> int:
        with self._count_lock:
            self.open_calls += 1
        return super().open_bytes(data)

    def decode_page(self, page_number: int, scale: float = 2.0) -> PageModel:
        with self._count_lock:
            self.decode_calls[page_number] += 1
        # Widen the window in which concurrent callers could race
        time.sleep(0.01)
        return super().decode_page(page_number, scale)


class BlockingReader(CountingReader):
    """Decodes wait until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def decode_page(self, page_number: int, scale: float = 2.0) -> PageModel:
        self.started.set()
        self.release.wait(5)
        return super().decode_page(page_number, scale)


class FakeRecognizer(BaseRecognizer):
    """
    Returns two fixed words per page and records which pages it saw.

    Pages in ``fail_pages`` raise :class:`RecognitionError`.
    """

    def __init__(self, fail_pages: Sequence[int] = (), delay: float = 0.0):
        self.fail_pages = set(fail_pages)
        self.delay = delay
        self.calls: List[int] = []

    @property
    def name(self) -> str:
        return "fake"

    def recognize(self, page: PageModel, tokenizer: Pattern[str]) -> List[Word]:
        self.calls.append(page.page_number)
        if self.delay:
            time.sleep(self.delay)
        if page.page_number in self.fail_pages:
            raise RecognitionError(f"cannot read page {page.page_number}")
        n = page.page_number
        return [
            Word(index=0, text=f"ocr{n}", bbox=(10.0, 10.0, 50.0, 20.0), page_number=n),
            Word(index=1, text="text", bbox=(60.0, 10.0, 90.0, 20.0), page_number=n),
        ]


class BlockingRecognizer(FakeRecognizer):
    """Recognition waits until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def recognize(self, page: PageModel, tokenizer: Pattern[str]) -> List[Word]:
        self.started.set()
        self.release.wait(5)
        return super().recognize(page, tokenizer)


class Recorder:
    """Collects every value passed to the engine's host callbacks."""

    def __init__(self):
        self.annotations: List[list] = []
        self.text_maps: List[list] = []

    def on_annotations(self, items):
        self.annotations.append(items)

    def on_text_map(self, layers):
        self.text_maps.append(layers)


@pytest.fixture
def three_page_pdf() -> bytes:
    return build_pdf(["Hello world", "Second page text", "Third page"])


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def reader() -> CountingReader:
    return CountingReader()


@pytest.fixture
def blocking_reader() -> BlockingReader:
    return BlockingReader()


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def supplied_words() -> Dict[str, Word]:
    """Words of a supplied page-1 layer, keyed by text."""
    words = [
        Word(index=0, text="Invoice", bbox=(20.0, 40.0, 70.0, 52.0), page_number=1),
        Word(index=1, text="ACME", bbox=(80.0, 40.0, 120.0, 52.0), page_number=1),
        Word(index=2, text="Corp", bbox=(125.0, 40.0, 160.0, 52.0), page_number=1),
        Word(index=3, text="2024", bbox=(20.0, 80.0, 50.0, 92.0), page_number=1),
    ]
    return {w.text: w for w in words}


@pytest.fixture
def blocking_recognizer() -> BlockingRecognizer:
    return BlockingRecognizer()


@pytest.fixture
def failing_recognizer() -> FakeRecognizer:
    return FakeRecognizer(fail_pages=(2,))


@pytest.fixture
def slow_recognizer() -> FakeRecognizer:
    return FakeRecognizer(delay=0.05)
