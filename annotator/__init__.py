"""
Annotation layer for the Inkshade annotator.

Annotation store, per-page text map, text recognition and the engine
that coordinates them with the page cache in :mod:`core`.
"""

from .engine import (
    AnnotatorCallbacks,
    AnnotatorConfig,
    AnnotatorEngine,
    PagePresentation,
    Presentation,
    PresentationState,
)
from .models import Annotation, Entity, EntityType
from .store import AnnotationStore
from .text_map import TextMapBuilder

__all__ = [
    "Annotation",
    "AnnotationStore",
    "AnnotatorCallbacks",
    "AnnotatorConfig",
    "AnnotatorEngine",
    "Entity",
    "EntityType",
    "PagePresentation",
    "Presentation",
    "PresentationState",
    "TextMapBuilder",
]
