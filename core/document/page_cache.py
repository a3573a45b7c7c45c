"""
Lazily-fetched, memoized page access for one document.

The cache resolves a :class:`DocumentSource` into a page count once, then
decodes pages on demand.  Decoded pages live in a 1-based arena for the
lifetime of the cache; at most one decode per page number is ever in
flight, and concurrent callers for the same page share it.

Blocking work (reading the source, PyMuPDF calls) runs in worker threads
via :func:`asyncio.to_thread`; all cache state is touched only from the
event loop thread.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from core.errors import ConfigurationError, LoadError
from core.page.page_model import PageModel

from .pdf_reader import PDFDocumentReader
from .source import DocumentSource

logger = logging.getLogger(__name__)


class PageCache:
    """
    Page cache for a single document source.

    Usage::

        cache = PageCache(DocumentSource(url="paper.pdf"))
        count = await cache.resolve()
        page = await cache.fetch_page(1)
    """

    def __init__(
        self,
        source: DocumentSource,
        reader: Optional[PDFDocumentReader] = None,
        raster_scale: float = 2.0,
        fetch_timeout: float = 30.0,
    ):
        self.source = source
        self.raster_scale = raster_scale
        self.fetch_timeout = fetch_timeout
        self._reader = reader or PDFDocumentReader()

        self._page_count: Optional[int] = None
        self._pages: List[Optional[PageModel]] = []
        self._pending: Dict[int, "asyncio.Future[Optional[PageModel]]"] = {}
        self._resolving: Optional["asyncio.Future[int]"] = None
        self._error: Optional[LoadError] = None
        self._closed = False
        self._version = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def page_count(self) -> int:
        """Resolved page count (0 until resolved)."""
        return self._page_count or 0

    @property
    def is_resolved(self) -> bool:
        return self._page_count is not None

    @property
    def error(self) -> Optional[LoadError]:
        """Terminal load error, if resolution or a decode failed."""
        return self._error

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def version(self) -> int:
        """Bumped every time a page is stored."""
        return self._version

    def is_cached(self, page_number: int) -> bool:
        return self.get_cached(page_number) is not None

    def get_cached(self, page_number: int) -> Optional[PageModel]:
        """Return the page if already fetched, without triggering a decode."""
        if 1 <= page_number <= len(self._pages):
            return self._pages[page_number - 1]
        return None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self) -> int:
        """
        Determine the document's page count.

        Idempotent: later calls return the fixed count (or re-raise the
        terminal error) without touching the source again.

        Raises:
            ConfigurationError: If the source supplies neither url nor data.
            LoadError: If the source cannot be read or opened.
        """
        if self._error is not None:
            raise self._error
        if self._page_count is not None:
            return self._page_count

        self.source.validate()
        self._ensure_open()

        if self._resolving is None:
            self._resolving = asyncio.ensure_future(self._resolve())
        return await asyncio.shield(self._resolving)

    async def _resolve(self) -> int:
        logger.debug("Resolving document: %s", self.source.describe())
        try:
            data = await asyncio.to_thread(self.source.read_bytes, self.fetch_timeout)
            count = await asyncio.to_thread(self._reader.open_bytes, data)
        except ConfigurationError:
            raise
        except LoadError as e:
            self._fail(e)
            raise
        except Exception as e:
            err = LoadError(f"Failed to load document: {e}")
            self._fail(err)
            raise err from e
        finally:
            self._resolving = None

        if self._closed:
            logger.debug("Cache closed during resolution; discarding result")
            self._reader.close_document()
            return 0

        self._page_count = count
        self._pages = [None] * count
        logger.info("Document resolved: %d pages", count)
        return count

    # ------------------------------------------------------------------
    # Page access
    # ------------------------------------------------------------------

    async def fetch_page(self, page_number: int) -> Optional[PageModel]:
        """
        Return the page handle, decoding it on first access.

        Args:
            page_number: 1-based page number

        Returns:
            The cached :class:`PageModel`, or ``None`` if the cache was
            torn down while the decode was in flight.

        Raises:
            LoadError: If the cache is in its terminal error state.
            IndexError: If *page_number* is outside the document.
        """
        if self._closed:
            return None
        await self.resolve()
        if self._closed:
            return None
        if page_number < 1 or page_number > self.page_count:
            raise IndexError(
                f"Page {page_number} out of range (document has {self.page_count} pages)"
            )

        cached = self._pages[page_number - 1]
        if cached is not None:
            return cached

        pending = self._pending.get(page_number)
        if pending is None:
            pending = asyncio.ensure_future(self._decode(page_number))
            self._pending[page_number] = pending
        return await asyncio.shield(pending)

    async def _decode(self, page_number: int) -> Optional[PageModel]:
        try:
            page = await asyncio.to_thread(
                self._reader.decode_page, page_number, self.raster_scale
            )
        except Exception as e:
            if self._closed:
                logger.debug("Decode of page %d failed after teardown: %s", page_number, e)
                return None
            if isinstance(e, LoadError):
                self._fail(e)
                raise
            err = LoadError(f"Failed to decode page {page_number}: {e}")
            self._fail(err)
            raise err from e
        finally:
            self._pending.pop(page_number, None)

        if self._closed:
            logger.debug("Discarding page %d decoded after teardown", page_number)
            return None
        if self._error is not None:
            raise self._error

        self._pages[page_number - 1] = page
        self._version += 1
        logger.debug("Cached page %d", page_number)
        return page

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise LoadError("Page cache has been closed")

    def _fail(self, err: LoadError) -> None:
        if self._error is None:
            logger.error("Document load failed: %s", err)
            self._error = err

    def close(self) -> None:
        """
        Tear the cache down.

        Decodes still in flight finish in their worker threads, but their
        results are discarded instead of stored.
        """
        if self._closed:
            return
        self._closed = True
        self._pages = []
        self._reader.close_document()
        logger.debug("Page cache closed (%d decodes in flight)", len(self._pending))

    def __repr__(self) -> str:
        cached = sum(1 for p in self._pages if p is not None)
        return (
            f"PageCache(source={self.source.describe()}, "
            f"pages={self.page_count}, cached={cached})"
        )
