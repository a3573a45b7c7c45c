"""
Annotation engine orchestrator: document → pages → annotations + text map.

Coordinates three independently arriving, page-indexed sources:

1. **Page data**: the :class:`PageCache` resolves the document and
   decodes pages on demand, one decode per page at most.
2. **Annotations**: the :class:`AnnotationStore` is the only structure
   the host mutates directly (add/remove).
3. **Text layers**: the :class:`TextMapBuilder` receives a supplied
   layer, or the recognizer's words, the first time a page is visited.

For every page number the engine presents page data, page annotations
and the page's text layer as one :class:`PagePresentation`, memoized on
the inputs that can change it, and pushes the aggregate annotation list
and text map to host callbacks whenever either changes.

Usage::

    from annotator.engine import AnnotatorConfig, AnnotatorEngine

    config = AnnotatorConfig(url="paper.pdf", disable_ocr=True)
    async with AnnotatorEngine(config, callbacks) as engine:
        await engine.visit_all()
        view = engine.render()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Tuple

from tqdm import tqdm

from core.document.page_cache import PageCache
from core.document.pdf_reader import PDFDocumentReader
from core.document.source import DocumentData, DocumentSource
from core.errors import ConfigurationError, LoadError
from core.page.models import TextLayer
from core.page.page_model import PageModel
from core.page.text_layer import full_text

from .geometry import BBox, normalize_bbox, union_bbox
from .models import Annotation, Entity, EntityType
from .ocr import RECOGNIZERS, BaseRecognizer, create_recognizer
from .ocr.tokenizer import DEFAULT_TOKENIZER, TokenizerLike, compile_tokenizer
from .store import AnnotationStore
from .text_map import TextMapBuilder

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Something went wrong while loading the PDF"


# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------


@dataclass
class AnnotatorConfig:
    """
    All host-facing options of the engine.

    Attributes:
        url:                 Document reference (HTTP(S) URL, file URL or path).
        data:                Raw document payload; wins over ``url``.
        http_headers:        Transport headers for HTTP(S) references.
        initial_scale:       Display zoom hint passed through to presentations.
        tokenizer:           Pattern segmenting recognised text into words.
        disable_ocr:         Never run recognition; pages without a supplied
                             layer get no text layer.
        entity:              Entity offered for new annotations.
        text_layer:          Supplied layers; these pages never run recognition.
        initial_text_map:    Echoed verbatim to the text-map callback.
        default_annotations: Seeds the annotation store.
        recognizer:          ``"auto"``, ``"tesseract"`` or ``"embedded"``.
        ocr_language:        Tesseract language code.
        ocr_psm:             Tesseract page segmentation mode (``None`` for default).
        raster_scale:        Resolution multiplier for decoded page images.
        fetch_timeout:       Socket timeout for remote documents (seconds).
        disable_tqdm:        Suppress progress bars in :meth:`AnnotatorEngine.visit_all`.
    """

    url: Optional[str] = None
    data: Optional[DocumentData] = None
    http_headers: Dict[str, str] = field(default_factory=dict)

    initial_scale: float = 1.5
    tokenizer: TokenizerLike = DEFAULT_TOKENIZER
    disable_ocr: bool = False
    entity: Optional[Entity] = None

    text_layer: Optional[List[TextLayer]] = None
    initial_text_map: Optional[List[TextLayer]] = None
    default_annotations: List[Annotation] = field(default_factory=list)

    recognizer: str = "auto"
    ocr_language: str = "eng"
    ocr_psm: Optional[int] = None
    raster_scale: float = 2.0
    fetch_timeout: float = 30.0

    disable_tqdm: bool = False

    @property
    def source(self) -> DocumentSource:
        return DocumentSource(url=self.url, data=self.data, http_headers=dict(self.http_headers))


@dataclass
class AnnotatorCallbacks:
    """
    Host callbacks, invoked on every relevant change.

    Attributes:
        on_annotations: Receives the full ordered annotation list.
        on_text_map:    Receives the text map (list of layers by page).
    """

    on_annotations: Optional[Callable[[List[Annotation]], None]] = None
    on_text_map: Optional[Callable[[List[TextLayer]], None]] = None


# ------------------------------------------------------------------
# Presentation
# ------------------------------------------------------------------


class PresentationState(Enum):
    PAGES = "pages"
    CONFIGURATION_ERROR = "configuration_error"
    LOAD_ERROR = "load_error"


@dataclass(frozen=True)
class PagePresentation:
    """Everything the presentation layer needs to draw one page."""

    page_number: int
    page: Optional[PageModel]  # None until fetched
    scale: float
    tokenizer: Pattern[str]
    ocr_disabled: bool
    entity: Optional[Entity]
    annotations: Tuple[Annotation, ...]
    text_layer: Optional[TextLayer]  # annotation-aware
    initial_text_layer: Optional[TextLayer]  # supplied by the host

    @property
    def is_loaded(self) -> bool:
        return self.page is not None


@dataclass(frozen=True)
class Presentation:
    """Whole-document view: either the page list or an error state."""

    state: PresentationState
    pages: Tuple[PagePresentation, ...] = ()
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.state is not PresentationState.PAGES


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------


class AnnotatorEngine:
    """
    Coordinates the page cache, annotation store and text map.

    The recognizer is built from the config on first use unless one is
    passed in.
    """

    def __init__(
        self,
        config: Optional[AnnotatorConfig] = None,
        callbacks: Optional[AnnotatorCallbacks] = None,
        recognizer: Optional[BaseRecognizer] = None,
        reader: Optional[PDFDocumentReader] = None,
    ):
        self.config = config or AnnotatorConfig()
        self.callbacks = callbacks or AnnotatorCallbacks()
        cfg = self.config

        self.source = cfg.source
        self.configuration_error: Optional[ConfigurationError] = None
        try:
            self.source.validate()
        except ConfigurationError as e:
            logger.error("Cannot load document: %s", e)
            self.configuration_error = e

        if recognizer is None and cfg.recognizer not in RECOGNIZERS:
            err = ConfigurationError(
                f"Unsupported recognizer: {cfg.recognizer!r} "
                f"(choose from {', '.join(RECOGNIZERS)})"
            )
            logger.error("%s", err)
            if self.configuration_error is None:
                self.configuration_error = err

        self.scale = cfg.initial_scale
        self.tokenizer = compile_tokenizer(cfg.tokenizer)
        self.disable_ocr = cfg.disable_ocr
        self.entity = cfg.entity

        self.cache = PageCache(
            self.source,
            reader=reader,
            raster_scale=cfg.raster_scale,
            fetch_timeout=cfg.fetch_timeout,
        )
        self.store = AnnotationStore(cfg.default_annotations)
        self.text_map = TextMapBuilder(self.store)
        self._recognizer = recognizer

        self._supplied: Dict[int, TextLayer] = {}
        for layer in cfg.text_layer or []:
            self._supplied.setdefault(layer.page_number, layer)

        self._recognitions: Dict[int, "asyncio.Future[None]"] = {}
        self._page_views: Dict[int, Tuple[tuple, PagePresentation]] = {}

        self._emitted: Optional[Tuple[int, int]] = None
        self._flush_pending = False
        self._flush_loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False
        self._unsubscribe = self.store.subscribe(self._on_store_change)

    # ------------------------------------------------------------------
    # Lazy component initialisation
    # ------------------------------------------------------------------

    @property
    def recognizer(self) -> BaseRecognizer:
        """The text recognizer, created from the config on first use."""
        if self._recognizer is None:
            cfg = self.config
            options = {}
            if cfg.recognizer != "embedded":
                options = {"language": cfg.ocr_language, "psm": cfg.ocr_psm}
            self._recognizer = create_recognizer(cfg.recognizer, **options)
            logger.debug("Recognizer ready: %r", self._recognizer)
        return self._recognizer

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def page_count(self) -> int:
        return self.cache.page_count

    @property
    def load_error(self) -> Optional[LoadError]:
        return self.cache.error

    @property
    def annotations(self) -> List[Annotation]:
        return list(self.store.annotations)

    @property
    def closed(self) -> bool:
        return self._closed

    def supplied_layer(self, page_number: int) -> Optional[TextLayer]:
        """The host-supplied layer for *page_number*, matched by page number."""
        return self._supplied.get(page_number)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """
        Resolve the document's page count.

        A load failure is kept as the whole-document error state (see
        :meth:`render`) rather than raised.

        Returns:
            The page count, or 0 on configuration or load errors.
        """
        if self.configuration_error is not None:
            return 0
        first = not self.cache.is_resolved
        try:
            count = await self.cache.resolve()
        except LoadError:
            self._schedule_flush()
            return 0

        if first:
            self._check_annotation_pages(self.store.annotations)
        self._schedule_flush()
        return count

    async def visit_page(self, page_number: int) -> Optional[PagePresentation]:
        """
        Fetch a page and settle its text layer.

        Returns:
            The page's presentation, or ``None`` if the engine was closed
            while the page was loading.

        Raises:
            ConfigurationError: If no document source was configured.
            LoadError: If the document (or this page) failed to load.
            IndexError: If *page_number* is outside the document.
        """
        if self.configuration_error is not None:
            raise self.configuration_error

        page = await self.cache.fetch_page(page_number)
        if page is None or self._closed:
            return None

        await self._settle_text_layer(page)
        if self._closed:
            return None

        self._schedule_flush()
        return self._page_view(page_number)

    async def visit_all(
        self, pages: Optional[Iterable[int]] = None
    ) -> List[Optional[PagePresentation]]:
        """
        Visit *pages* (default: all) concurrently.

        Pages complete in any order; a slow or failing page does not hold
        up the others.  Per-page failures are logged and reported as
        ``None`` entries.
        """
        if self.configuration_error is not None:
            raise self.configuration_error

        await self.load()
        if self.cache.error is not None:
            return []

        numbers = list(pages) if pages is not None else list(range(1, self.page_count + 1))
        tasks = [asyncio.ensure_future(self._visit_safely(n)) for n in numbers]

        with tqdm(
            total=len(tasks),
            desc="Loading pages",
            unit="page",
            disable=self.config.disable_tqdm,
        ) as pbar:
            for done in asyncio.as_completed(tasks):
                await done
                pbar.update(1)

        results = [t.result() for t in tasks]
        logger.info(
            "Visited %d pages: %d with text layers",
            len(numbers),
            sum(1 for n in numbers if self.text_map.has_page(n)),
        )
        return results

    async def _visit_safely(self, page_number: int) -> Optional[PagePresentation]:
        try:
            return await self.visit_page(page_number)
        except (LoadError, IndexError) as e:
            logger.warning("Page %d failed to load: %s", page_number, e)
            return None

    # ------------------------------------------------------------------
    # Text layers
    # ------------------------------------------------------------------

    async def _settle_text_layer(self, page: PageModel) -> None:
        """
        Decide the page's authoritative text layer.

        A supplied layer wins and recognition never runs for that page;
        otherwise recognition runs once, unless disabled.
        """
        n = page.page_number
        supplied = self._supplied.get(n)
        if supplied is not None:
            if not self.text_map.has_page(n):
                self.text_map.add_page_to_text_map(n, supplied.words, supplied.source)
            return

        if self.text_map.has_page(n) or self.disable_ocr:
            return

        pending = self._recognitions.get(n)
        if pending is None:
            pending = asyncio.ensure_future(self._recognize(page))
            self._recognitions[n] = pending
        await asyncio.shield(pending)

    async def _recognize(self, page: PageModel) -> None:
        n = page.page_number
        try:
            recognizer = self.recognizer
            words = await asyncio.to_thread(recognizer.recognize, page, self.tokenizer)
        except Exception as e:
            logger.warning(
                "Text recognition failed on page %d (%s); page has no text layer", n, e
            )
            return
        finally:
            self._recognitions.pop(n, None)

        if self._closed:
            logger.debug("Discarding text layer for page %d recognised after teardown", n)
            return
        if self.text_map.has_page(n):
            return

        self.text_map.add_page_to_text_map(n, words, recognizer.source_for(page))
        self._schedule_flush()

    # ------------------------------------------------------------------
    # Host state
    # ------------------------------------------------------------------

    def set_scale(self, scale: float) -> None:
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        self.scale = scale

    def set_tokenizer(self, tokenizer: TokenizerLike) -> None:
        """Use *tokenizer* for pages recognised from now on."""
        self.tokenizer = compile_tokenizer(tokenizer)

    def set_disable_ocr(self, disable_ocr: bool) -> None:
        self.disable_ocr = disable_ocr

    def set_entity(self, entity: Optional[Entity]) -> None:
        self.entity = entity

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def add_annotation(self, annotation: Annotation) -> None:
        self._check_annotation_pages([annotation])
        self.store.add(annotation)

    def remove_annotation(self, annotation_id: str) -> bool:
        return self.store.remove(annotation_id)

    def annotations_for_page(self, page_number: int) -> List[Annotation]:
        return self.store.for_page(page_number)

    def annotate_region(
        self,
        page_number: int,
        bbox: BBox,
        entity: Optional[Entity] = None,
    ) -> Annotation:
        """
        Create and store an annotation from a selected region.

        NER entities label the words inside the region (the annotation's
        box shrinks to those words); AREA entities keep the region as drawn.

        Raises:
            ValueError: If no entity is selected, or an NER selection
                contains no words.
        """
        entity = entity or self.entity
        if entity is None:
            raise ValueError("No entity selected for the new annotation")

        region = normalize_bbox(bbox)
        words = self.text_map.words_in_region(page_number, region)

        if entity.entity_type is EntityType.NER:
            if not words:
                raise ValueError(f"No words in the selected region on page {page_number}")
            annotation = Annotation(
                id=Annotation.new_id(),
                page_number=page_number,
                entity=entity,
                bbox=union_bbox(w.bbox for w in words),
                text=full_text(words),
                word_indices=tuple(w.index for w in words),
            )
        else:
            annotation = Annotation(
                id=Annotation.new_id(),
                page_number=page_number,
                entity=entity,
                bbox=region,
                text=full_text(words),
            )

        self.add_annotation(annotation)
        return annotation

    def _check_annotation_pages(self, annotations: Iterable[Annotation]) -> None:
        if not self.cache.is_resolved:
            return
        for a in annotations:
            if not 1 <= a.page_number <= self.page_count:
                logger.warning(
                    "Annotation %s is on page %d but the document has %d pages",
                    a.id,
                    a.page_number,
                    self.page_count,
                )

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def render(self) -> Presentation:
        """
        Build the whole-document view and flush pending callbacks.

        Pages whose inputs did not change since the previous call are
        returned as the same :class:`PagePresentation` objects.
        """
        if self.configuration_error is not None:
            return Presentation(
                PresentationState.CONFIGURATION_ERROR,
                message=str(self.configuration_error),
            )

        self.flush()

        if self.cache.error is not None:
            return Presentation(PresentationState.LOAD_ERROR, message=LOAD_ERROR_MESSAGE)

        pages = tuple(self._page_view(n) for n in range(1, self.page_count + 1))
        return Presentation(PresentationState.PAGES, pages=pages)

    def _page_key(self, page_number: int) -> tuple:
        return (
            self.page_count,
            self.cache.error is not None,
            self.scale,
            self.tokenizer.pattern,
            self.tokenizer.flags,
            self.disable_ocr,
            self.entity,
            self.store.page_version(page_number),
            self.text_map.page_version(page_number),
            self.cache.is_cached(page_number),
        )

    def _page_view(self, page_number: int) -> PagePresentation:
        key = self._page_key(page_number)
        cached = self._page_views.get(page_number)
        if cached is not None and cached[0] == key:
            return cached[1]

        view = PagePresentation(
            page_number=page_number,
            page=self.cache.get_cached(page_number),
            scale=self.scale,
            tokenizer=self.tokenizer,
            ocr_disabled=self.disable_ocr,
            entity=self.entity,
            annotations=tuple(self.store.for_page(page_number)),
            text_layer=self.text_map.labeled_layer(page_number),
            initial_text_layer=self._supplied.get(page_number),
        )
        self._page_views[page_number] = (key, view)
        logger.debug("Recomputed presentation for page %d", page_number)
        return view

    # ------------------------------------------------------------------
    # Callback propagation
    # ------------------------------------------------------------------

    def _on_store_change(self, annotations: List[Annotation]) -> None:
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        """Coalesce changes into one flush on the running loop, if any."""
        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the host flushes through render() or flush()
            return
        if self._flush_pending and self._flush_loop is loop:
            return
        self._flush_pending = True
        self._flush_loop = loop
        loop.call_soon(self._scheduled_flush)

    def _scheduled_flush(self) -> None:
        if self._flush_pending:
            self.flush()

    def flush(self) -> bool:
        """
        Push the annotation list and text map to the host callbacks.

        Callbacks fire when the annotation store or the text map changed
        since the last flush (and on the first flush).  The text-map
        callback receives ``initial_text_map`` verbatim when one was
        configured.

        Returns:
            True if callbacks were invoked.
        """
        self._flush_pending = False
        if self.configuration_error is not None or self._closed:
            return False

        state = (self.store.version, self.text_map.version)
        if state == self._emitted:
            return False
        self._emitted = state

        cb = self.callbacks
        if cb.on_annotations is not None:
            cb.on_annotations(list(self.store.annotations))
        if cb.on_text_map is not None:
            if self.config.initial_text_map is not None:
                cb.on_text_map(list(self.config.initial_text_map))
            else:
                cb.on_text_map(self.text_map.text_map())
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """
        Tear the engine down.

        Page decodes and recognitions still in flight complete, but their
        results are discarded and no further callbacks fire.
        """
        if self._closed:
            return
        self._closed = True
        self._flush_pending = False
        self._unsubscribe()
        self.cache.close()
        logger.debug(
            "Engine closed (%d recognitions in flight)", len(self._recognitions)
        )

    async def __aenter__(self) -> "AnnotatorEngine":
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return (
            f"AnnotatorEngine(source={self.source.describe()}, "
            f"pages={self.page_count}, annotations={len(self.store)}, "
            f"text_layers={len(self.text_map)})"
        )
