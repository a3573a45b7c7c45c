"""
Word extraction from a page's embedded text layer.

PyMuPDF already groups characters into whitespace-separated words; this
module re-segments them with the caller's tokenizer so embedded text and
OCR output share the same word boundaries.
"""

import re
from typing import Iterable, List, Pattern, Tuple

from .models import Word
from .page_model import NativeWord, PageModel


def tokenize_box(
    text: str,
    bbox: Tuple[float, float, float, float],
    tokenizer: Pattern[str],
) -> List[Tuple[str, Tuple[float, float, float, float]]]:
    """
    Split a word box into one box per token.

    The box is divided horizontally in proportion to each token's
    character offsets; the vertical extent is kept.  Whitespace tokens
    are dropped.
    """
    x0, y0, x1, y1 = bbox
    n = len(text)
    if n == 0:
        return []

    char_w = (x1 - x0) / n
    parts = []
    for m in tokenizer.finditer(text):
        token = m.group(0)
        if not token.strip():
            continue
        parts.append((token, (x0 + m.start() * char_w, y0, x0 + m.end() * char_w, y1)))
    return parts


def build_words(
    native_words: Iterable[NativeWord],
    page_number: int,
    tokenizer: Pattern[str],
) -> List[Word]:
    """Turn (x0, y0, x1, y1, text) tuples into indexed Words."""
    words: List[Word] = []
    for x0, y0, x1, y1, text in native_words:
        for token, box in tokenize_box(text, (x0, y0, x1, y1), tokenizer):
            words.append(
                Word(index=len(words), text=token, bbox=box, page_number=page_number)
            )
    return words


def page_words(page: PageModel, tokenizer: Pattern[str]) -> List[Word]:
    """Words from *page*'s embedded text, empty for image-only pages."""
    return build_words(page.native_words, page.page_number, tokenizer)


def full_text(words: Iterable[Word]) -> str:
    """Join words with single spaces, collapsing runs of whitespace."""
    return re.sub(r"\s+", " ", " ".join(w.text for w in words)).strip()
