"""
Per-page text map: the authoritative word layer of every page seen so far.

Raw layers are stored exactly as inserted (supplied, embedded or OCR).
The annotation-aware view labels each word with the entity of the
annotation covering it; that view is derived from the annotation store
on demand and cached per page, keyed on the page's layer version and
annotation version, so only pages whose inputs changed are re-derived.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from core.page.models import TextLayer, TextSource, Word

from .geometry import BBox, compute_overlap_ratio, normalize_bbox
from .models import Annotation
from .store import AnnotationStore

logger = logging.getLogger(__name__)

# Minimum fraction of a word's box inside an annotation region
MIN_WORD_OVERLAP = 0.5


class TextMapBuilder:
    """Builds and keeps the running page-number → TextLayer mapping."""

    def __init__(self, store: AnnotationStore):
        self._store = store
        self._layers: Dict[int, TextLayer] = {}
        self._page_versions: Dict[int, int] = {}
        self._version = 0

        # page -> ((layer version, annotation version), labeled layer)
        self._labeled: Dict[int, Tuple[Tuple[int, int], TextLayer]] = {}

    # ------------------------------------------------------------------
    # Raw layers
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        """Bumped on every insertion or replacement."""
        return self._version

    def page_version(self, page_number: int) -> int:
        return self._page_versions.get(page_number, 0)

    @property
    def pages(self) -> List[int]:
        """Page numbers with a text layer, ascending."""
        return sorted(self._layers)

    def has_page(self, page_number: int) -> bool:
        return page_number in self._layers

    def get_page(self, page_number: int) -> Optional[TextLayer]:
        """The page's layer exactly as inserted, or None if not computed."""
        return self._layers.get(page_number)

    def add_page_to_text_map(
        self,
        page_number: int,
        words: Iterable[Word],
        source: TextSource = TextSource.OCR,
    ) -> TextLayer:
        """
        Insert the layer for *page_number*, replacing any existing entry.

        Returns:
            The stored :class:`TextLayer`.
        """
        layer = TextLayer.from_words(page_number, words, source)
        replaced = page_number in self._layers
        self._layers[page_number] = layer
        self._page_versions[page_number] = self._page_versions.get(page_number, 0) + 1
        self._version += 1
        logger.debug(
            "%s text layer for page %d: %d words (%s)",
            "Replaced" if replaced else "Added",
            page_number,
            len(layer),
            source.value,
        )
        return layer

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, page_number: object) -> bool:
        return page_number in self._layers

    # ------------------------------------------------------------------
    # Annotation-aware view
    # ------------------------------------------------------------------

    def labeled_layer(self, page_number: int) -> Optional[TextLayer]:
        """
        The page's layer with words labelled by covering annotations.

        Re-derived only when the page's layer or annotation set changed
        since the last call.
        """
        layer = self._layers.get(page_number)
        if layer is None:
            return None

        key = (self.page_version(page_number), self._store.page_version(page_number))
        cached = self._labeled.get(page_number)
        if cached is not None and cached[0] == key:
            return cached[1]

        labeled = _label_layer(layer, self._store.for_page(page_number))
        self._labeled[page_number] = (key, labeled)
        return labeled

    def text_map(self) -> List[TextLayer]:
        """All labelled layers, sorted by page number."""
        return [self.labeled_layer(p) for p in self.pages]

    def words_in_region(
        self,
        page_number: int,
        bbox: BBox,
        min_overlap: float = MIN_WORD_OVERLAP,
    ) -> List[Word]:
        """Words of *page_number* lying (mostly) inside *bbox*."""
        layer = self._layers.get(page_number)
        if layer is None:
            return []
        region = normalize_bbox(bbox)
        return [w for w in layer.words if compute_overlap_ratio(w.bbox, region) >= min_overlap]

    def __repr__(self) -> str:
        return f"TextMapBuilder(pages={self.pages})"


def _label_layer(layer: TextLayer, annotations: List[Annotation]) -> TextLayer:
    """Copy *layer* with each covered word's ``label`` set."""
    if not annotations:
        if all(w.label is None for w in layer.words):
            return layer
        return TextLayer.from_words(
            layer.page_number, (w.with_label(None) for w in layer.words), layer.source
        )

    labels: Dict[int, str] = {}
    for ann in annotations:
        for idx in _covered_indices(layer, ann):
            # Earlier annotations win on overlap
            labels.setdefault(idx, ann.label)

    return TextLayer.from_words(
        layer.page_number,
        (w.with_label(labels.get(w.index)) for w in layer.words),
        layer.source,
    )


def _covered_indices(layer: TextLayer, ann: Annotation) -> List[int]:
    if ann.word_indices:
        return list(ann.word_indices)
    if ann.bbox is None:
        return []
    region = normalize_bbox(ann.bbox)
    return [
        w.index
        for w in layer.words
        if compute_overlap_ratio(w.bbox, region) >= MIN_WORD_OVERLAP
    ]
