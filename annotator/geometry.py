"""
Bounding-box helpers shared by the text map and the orchestrator.

All boxes are ``(x0, y0, x1, y1)`` tuples in the same coordinate space.
"""

from typing import Iterable, Optional, Tuple

BBox = Tuple[float, float, float, float]


def _bbox_intersection(a: BBox, b: BBox) -> float:
    """Area of the intersection rectangle (0 if no overlap)."""
    x0 = max(a[0], b[0])
    y0 = max(a[1], b[1])
    x1 = min(a[2], b[2])
    y1 = min(a[3], b[3])
    if x1 <= x0 or y1 <= y0:
        return 0.0
    return (x1 - x0) * (y1 - y0)


def bbox_area(bbox: BBox) -> float:
    return max(0, bbox[2] - bbox[0]) * max(0, bbox[3] - bbox[1])


def compute_overlap_ratio(inner: BBox, outer: BBox) -> float:
    """
    Fraction of *inner*'s area covered by *outer*.

    Used instead of IoU because an annotation region usually spans
    several small words, each of which has low IoU with it.
    """
    inter = _bbox_intersection(inner, outer)
    area = bbox_area(inner)
    return inter / area if area > 0 else 0.0


def union_bbox(boxes: Iterable[BBox]) -> Optional[BBox]:
    """Smallest box containing all *boxes*, or None if there are none."""
    boxes = list(boxes)
    if not boxes:
        return None
    return (
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    )


def normalize_bbox(bbox: BBox) -> BBox:
    """Order corners so that x0 <= x1 and y0 <= y1 (drag selections)."""
    x0, y0, x1, y1 = bbox
    return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))
