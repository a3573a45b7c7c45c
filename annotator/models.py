"""
Annotation data models.

An Entity is a classification the host offers for labelling (PERSON,
DATE, ...); an Annotation applies one entity to a region or span of
words on a page.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class EntityType(str, Enum):
    """How an entity is applied."""

    NER = "NER"  # labels a span of words
    AREA = "AREA"  # labels a rectangular region


@dataclass(frozen=True)
class Entity:
    """A label the host makes available for new annotations."""

    name: str
    id: Optional[str] = None
    color: str = "#ffeb3b"
    entity_type: EntityType = EntityType.NER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "entityType": self.entity_type.value,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Entity":
        return Entity(
            name=str(d["name"]),
            id=None if d.get("id") is None else str(d["id"]),
            color=str(d.get("color", "#ffeb3b")),
            entity_type=EntityType(d.get("entityType", EntityType.NER.value)),
        )


@dataclass(frozen=True)
class Annotation:
    """
    A labelled region or word span on one page.

    Annotations are immutable: editing one means removing it and adding a
    replacement.  ``page_number`` is 1-based.
    """

    id: str
    page_number: int
    entity: Entity
    bbox: Optional[Tuple[float, float, float, float]] = None  # PDF points
    text: str = ""
    word_indices: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return self.entity.name

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "page": self.page_number,
            "entity": self.entity.to_dict(),
            "bbox": None if self.bbox is None else list(self.bbox),
            "text": self.text,
            "wordIndices": list(self.word_indices),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Annotation":
        entity_raw = d.get("entity")
        if isinstance(entity_raw, dict):
            entity = Entity.from_dict(entity_raw)
        elif "label" in d:
            entity = Entity(name=str(d["label"]))
        else:
            raise ValueError(f"Annotation {d.get('id')!r} has no entity or label")

        bbox = d.get("bbox")
        return Annotation(
            id=str(d["id"]),
            page_number=int(d["page"]),
            entity=entity,
            bbox=None if bbox is None else tuple(float(v) for v in bbox),
            text=str(d.get("text", "")),
            word_indices=tuple(int(i) for i in d.get("wordIndices", [])),
        )
