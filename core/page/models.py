"""
Word and text-layer data models for document pages.

Bounding boxes are in PDF point space (scale 1) so they stay valid
whatever zoom the page is displayed at.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


class TextSource(str, Enum):
    """Where a page's text layer came from."""

    SUPPLIED = "supplied"  # handed in by the host
    EMBEDDED = "embedded"  # the PDF's own text layer
    OCR = "ocr"  # recognised from the page image


@dataclass(frozen=True)
class Word:
    """A single word with its position on the page."""

    index: int  # position within the page's text layer
    text: str
    bbox: Tuple[float, float, float, float]  # x0, y0, x1, y1
    page_number: int
    confidence: Optional[float] = None  # 0..1 when the recogniser reports it

    # Entity name, only set on annotation-aware copies
    label: Optional[str] = None

    @property
    def width(self) -> float:
        return self.bbox[2] - self.bbox[0]

    @property
    def height(self) -> float:
        return self.bbox[3] - self.bbox[1]

    def with_label(self, label: Optional[str]) -> "Word":
        return self if label == self.label else replace(self, label=label)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "index": self.index,
            "text": self.text,
            "bbox": list(self.bbox),
            "page": self.page_number,
        }
        if self.confidence is not None:
            out["confidence"] = self.confidence
        if self.label is not None:
            out["label"] = self.label
        return out

    @staticmethod
    def from_dict(
        d: Dict[str, Any], page_number: Optional[int] = None, index: int = 0
    ) -> "Word":
        """
        Build a Word from its JSON form.

        ``index`` is used when the dict carries none (host layers list
        words in reading order without indices).
        """
        bbox = d.get("bbox")
        if bbox is None or len(bbox) != 4:
            raise ValueError(f"Word bbox must have 4 values, got {bbox!r}")
        return Word(
            index=int(d.get("index", index)),
            text=str(d.get("text", "")),
            bbox=tuple(float(v) for v in bbox),
            page_number=int(d.get("page", page_number if page_number is not None else 0)),
            confidence=None if d.get("confidence") is None else float(d["confidence"]),
            label=d.get("label"),
        )


@dataclass(frozen=True)
class TextLayer:
    """Ordered words for one page."""

    page_number: int
    words: Tuple[Word, ...] = field(default_factory=tuple)
    source: TextSource = TextSource.SUPPLIED

    @staticmethod
    def from_words(
        page_number: int,
        words: Iterable[Word],
        source: TextSource = TextSource.SUPPLIED,
    ) -> "TextLayer":
        return TextLayer(page_number=page_number, words=tuple(words), source=source)

    @property
    def text(self) -> str:
        return " ".join(w.text for w in self.words)

    def __len__(self) -> int:
        return len(self.words)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page_number,
            "source": self.source.value,
            "words": [w.to_dict() for w in self.words],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TextLayer":
        page_number = int(d["page"])
        words_raw = d.get("words") or []
        if not isinstance(words_raw, list):
            raise TypeError("TextLayer.words must be a list")
        return TextLayer(
            page_number=page_number,
            words=tuple(
                Word.from_dict(w, page_number, index=i) for i, w in enumerate(words_raw)
            ),
            source=TextSource(d.get("source", TextSource.SUPPLIED.value)),
        )


def layers_to_dicts(layers: Iterable[TextLayer]) -> List[Dict[str, Any]]:
    return [layer.to_dict() for layer in layers]
