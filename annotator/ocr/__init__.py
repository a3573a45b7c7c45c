"""
Text recognition: tokenizer, embedded-text reader and OCR backends.
"""

from .base_engine import BaseRecognizer, RecognitionError
from .embedded_engine import AutoRecognizer, EmbeddedTextRecognizer
from .tesseract_engine import TesseractRecognizer, parse_tsv
from .tokenizer import (
    DEFAULT_TOKENIZER,
    DEFAULT_TOKENIZER_PATTERN,
    compile_tokenizer,
    tokenize,
)

RECOGNIZERS = ("auto", "tesseract", "embedded")


def create_recognizer(name: str = "auto", **options) -> BaseRecognizer:
    """
    Build a recognizer by name.

    Args:
        name:    ``"auto"``, ``"tesseract"`` or ``"embedded"``.
        options: Passed to :class:`TesseractRecognizer` (language, psm, ...).

    Raises:
        ValueError: For unknown names.
    """
    if name == "embedded":
        return EmbeddedTextRecognizer()
    if name == "tesseract":
        return TesseractRecognizer(**options)
    if name == "auto":
        return AutoRecognizer(TesseractRecognizer(**options))
    raise ValueError(f"Unsupported recognizer: {name!r} (choose from {', '.join(RECOGNIZERS)})")


__all__ = [
    "AutoRecognizer",
    "BaseRecognizer",
    "DEFAULT_TOKENIZER",
    "DEFAULT_TOKENIZER_PATTERN",
    "EmbeddedTextRecognizer",
    "RECOGNIZERS",
    "RecognitionError",
    "TesseractRecognizer",
    "compile_tokenizer",
    "create_recognizer",
    "parse_tsv",
    "tokenize",
]
