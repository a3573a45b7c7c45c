"""
Core backend for the Inkshade annotator.
Document sources, page decoding and caching, and page text models;
Nothing in this package knows about annotations or OCR.
"""

from .document import DocumentSource, PageCache, PDFDocumentReader
from .errors import ConfigurationError, LoadError
from .page import PageModel, TextLayer, TextSource, Word

__all__ = [
    "ConfigurationError",
    "DocumentSource",
    "LoadError",
    "PageCache",
    "PageModel",
    "PDFDocumentReader",
    "TextLayer",
    "TextSource",
    "Word",
]
