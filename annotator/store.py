"""
Annotation store: the single source of truth for what is annotated.

Ordered, page-queryable, append/remove only.  Every mutation bumps a
global version and the version of the page it touched, and is pushed to
subscribers with the full annotation list.
"""

import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .models import Annotation

logger = logging.getLogger(__name__)

AnnotationListener = Callable[[List[Annotation]], None]


class AnnotationStore:
    """Ordered collection of annotations, queryable by page."""

    def __init__(self, annotations: Optional[Iterable[Annotation]] = None):
        self._items: List[Annotation] = list(annotations or [])
        self._listeners: List[AnnotationListener] = []
        self._version = 0
        self._page_versions: Dict[int, int] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def annotations(self) -> Tuple[Annotation, ...]:
        """All annotations in insertion order."""
        return tuple(self._items)

    @property
    def version(self) -> int:
        return self._version

    def page_version(self, page_number: int) -> int:
        """Mutation counter for a single page's annotation set."""
        return self._page_versions.get(page_number, 0)

    def for_page(self, page_number: int) -> List[Annotation]:
        """Annotations on *page_number*, in insertion order."""
        return [a for a in self._items if a.page_number == page_number]

    def get(self, annotation_id: str) -> Optional[Annotation]:
        """First annotation with *annotation_id*, if any."""
        for a in self._items:
            if a.id == annotation_id:
                return a
        return None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(tuple(self._items))

    def __contains__(self, annotation_id: object) -> bool:
        return any(a.id == annotation_id for a in self._items)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, annotation: Annotation) -> None:
        """Append *annotation*.  Duplicate ids are allowed."""
        if annotation.id in self:
            logger.warning("Adding duplicate annotation id %r", annotation.id)
        self._items.append(annotation)
        self._touch({annotation.page_number})
        logger.debug(
            "Added annotation %s (%s) on page %d",
            annotation.id,
            annotation.label,
            annotation.page_number,
        )
        self._notify()

    def remove(self, annotation_id: str) -> bool:
        """
        Remove every annotation with *annotation_id*.

        Returns:
            True if anything was removed.  Unknown ids are a no-op.
        """
        removed = [a for a in self._items if a.id == annotation_id]
        if not removed:
            return False

        self._items = [a for a in self._items if a.id != annotation_id]
        self._touch({a.page_number for a in removed})
        logger.debug("Removed annotation %s (%d entries)", annotation_id, len(removed))
        self._notify()
        return True

    def _touch(self, pages: Iterable[int]) -> None:
        self._version += 1
        for p in pages:
            self._page_versions[p] = self._page_versions.get(p, 0) + 1

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: AnnotationListener) -> Callable[[], None]:
        """
        Call *listener* with the full list after every add/remove.

        Returns:
            A function that removes the subscription.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = list(self._items)
        for listener in list(self._listeners):
            listener(snapshot)

    def __repr__(self) -> str:
        pages = sorted({a.page_number for a in self._items})
        return f"AnnotationStore(annotations={len(self._items)}, pages={pages})"
