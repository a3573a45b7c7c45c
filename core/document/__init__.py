"""
Document loading: source resolution, PDF decoding and the page cache.
"""

from .page_cache import PageCache
from .pdf_reader import PDFDocumentReader
from .source import DocumentSource

__all__ = [
    "DocumentSource",
    "PageCache",
    "PDFDocumentReader",
]
