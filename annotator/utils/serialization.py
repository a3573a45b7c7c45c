"""
JSON helpers for text layers, annotations and engine output.

Files accept either a bare list or an object wrapping it (``{"text_map":
[...]}`` / ``{"annotations": [...]}``), so the output of
:func:`write_document` can be fed straight back in.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from core.page.models import TextLayer, layers_to_dicts

from ..models import Annotation

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _load_list(path: PathLike, key: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        raw = raw.get(key, [])
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a list of {key} entries")
    return raw


def load_text_layers(path: PathLike) -> List[TextLayer]:
    """Read text layers from a JSON file."""
    layers = [TextLayer.from_dict(d) for d in _load_list(path, "text_map")]
    logger.debug("Loaded %d text layers from %s", len(layers), path)
    return layers


def load_annotations(path: PathLike) -> List[Annotation]:
    """Read annotations from a JSON file."""
    annotations = [Annotation.from_dict(d) for d in _load_list(path, "annotations")]
    logger.debug("Loaded %d annotations from %s", len(annotations), path)
    return annotations


def document_to_dict(
    page_count: int,
    annotations: Iterable[Annotation],
    text_map: Iterable[TextLayer],
) -> Dict[str, Any]:
    return {
        "page_count": page_count,
        "annotations": [a.to_dict() for a in annotations],
        "text_map": layers_to_dicts(text_map),
    }


def write_document(
    path: Optional[PathLike],
    page_count: int,
    annotations: Iterable[Annotation],
    text_map: Iterable[TextLayer],
) -> None:
    """
    Write the engine's output as JSON.

    Args:
        path:        Destination file, or ``None`` for stdout.
        page_count:  Resolved page count of the document.
        annotations: Annotation list as passed to the host callback.
        text_map:    Text layers as passed to the host callback.
    """
    doc = document_to_dict(page_count, annotations, text_map)
    if path is None:
        json.dump(doc, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return

    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)
    logger.info("Wrote %d annotations and %d text layers to %s",
                len(doc["annotations"]), len(doc["text_map"]), out)
