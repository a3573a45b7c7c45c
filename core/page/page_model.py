"""
Immutable handle for a fetched document page.

Built once by the reader's decode step and cached for the lifetime of the
engine instance, so it carries everything later stages need (geometry,
raster image, embedded text) without going back to the document.
"""

from typing import Optional, Tuple

from PIL import Image

# x0, y0, x1, y1, text as returned by PyMuPDF's "words" extraction
NativeWord = Tuple[float, float, float, float, str]


class PageModel:
    """
    Page data produced by the rendering collaborator.

    All attributes are read-only; the image should be treated as read-only
    too (copy it before drawing on it).
    """

    __slots__ = ("_page_number", "_width", "_height", "_scale", "_image", "_native_words")

    def __init__(
        self,
        page_number: int,
        width: float,
        height: float,
        scale: float,
        image: Optional[Image.Image] = None,
        native_words: Tuple[NativeWord, ...] = (),
    ):
        if page_number < 1:
            raise ValueError(f"page_number is 1-based, got {page_number}")
        self._page_number = page_number
        self._width = float(width)
        self._height = float(height)
        self._scale = float(scale)
        self._image = image
        self._native_words = tuple(native_words)

    @property
    def page_number(self) -> int:
        """1-based page number."""
        return self._page_number

    @property
    def width(self) -> float:
        """Page width in points."""
        return self._width

    @property
    def height(self) -> float:
        """Page height in points."""
        return self._height

    @property
    def scale(self) -> float:
        """Scale the raster image was rendered at (pixels per point)."""
        return self._scale

    @property
    def image(self) -> Optional[Image.Image]:
        """Rendered RGB page image, or None if rendering was skipped."""
        return self._image

    @property
    def native_words(self) -> Tuple[NativeWord, ...]:
        """Words from the PDF's embedded text layer, in PDF points."""
        return self._native_words

    @property
    def has_text(self) -> bool:
        """Check if page has extractable text."""
        return any(w[4].strip() for w in self._native_words)

    def to_image_coords(
        self, bbox: Tuple[float, float, float, float]
    ) -> Tuple[float, float, float, float]:
        """Convert a point-space bbox to raster pixel space."""
        s = self._scale
        return (bbox[0] * s, bbox[1] * s, bbox[2] * s, bbox[3] * s)

    def __repr__(self) -> str:
        return (
            f"PageModel(page={self._page_number}, "
            f"size={self._width:.0f}x{self._height:.0f}, "
            f"words={len(self._native_words)})"
        )
