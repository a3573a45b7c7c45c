"""
Word segmentation for recognised and embedded text.

The default pattern keeps punctuation-joined groups together
(``e-mail``, ``3.14``, ``01/02/2024``, ``1,000``), then bare words, then
any single non-word character.
"""

import re
from typing import Iterator, Pattern, Tuple, Union

DEFAULT_TOKENIZER_PATTERN = r"\w+([,.\-/]\w+)+|\w+|\W"

DEFAULT_TOKENIZER: Pattern[str] = re.compile(DEFAULT_TOKENIZER_PATTERN)

TokenizerLike = Union[str, Pattern[str]]


def compile_tokenizer(tokenizer: TokenizerLike = DEFAULT_TOKENIZER) -> Pattern[str]:
    """
    Return *tokenizer* as a compiled pattern.

    Raises:
        ValueError: If the pattern is invalid or can match the empty string.
    """
    if isinstance(tokenizer, re.Pattern):
        pattern = tokenizer
    else:
        try:
            pattern = re.compile(tokenizer)
        except re.error as e:
            raise ValueError(f"Invalid tokenizer pattern {tokenizer!r}: {e}") from e

    if pattern.fullmatch(""):
        raise ValueError(f"Tokenizer pattern {pattern.pattern!r} matches the empty string")
    return pattern


def tokenize(text: str, tokenizer: Pattern[str] = DEFAULT_TOKENIZER) -> Iterator[Tuple[str, int, int]]:
    """Yield ``(token, start, end)`` for every non-whitespace token."""
    for m in tokenizer.finditer(text):
        token = m.group(0)
        if token.strip():
            yield token, m.start(), m.end()
