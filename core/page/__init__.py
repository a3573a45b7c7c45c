"""
Page handles and per-page text models.
"""

from .models import TextLayer, TextSource, Word
from .page_model import PageModel
from .text_layer import build_words, page_words, tokenize_box

__all__ = [
    "PageModel",
    "TextLayer",
    "TextSource",
    "Word",
    "build_words",
    "page_words",
    "tokenize_box",
]
