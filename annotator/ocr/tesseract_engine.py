"""
Tesseract OCR via the ``tesseract`` command-line program.

The rendered page image is written to a temporary PNG, recognised with
TSV output, and each word-level row is re-segmented with the caller's
tokenizer.  Pixel boxes are converted back to PDF points using the page's
raster scale.
"""

import csv
import logging
import os
import subprocess
import tempfile
from typing import List, Optional, Pattern, Tuple

from core.page.models import Word
from core.page.page_model import PageModel
from core.page.text_layer import tokenize_box

from .base_engine import BaseRecognizer, RecognitionError

logger = logging.getLogger(__name__)

# One recognised word: structural sort key, text, pixel bbox, confidence
TsvWord = Tuple[Tuple[int, int, int, int], str, Tuple[int, int, int, int], Optional[float]]


def _normalize_confidence(raw_conf: Optional[float]) -> Optional[float]:
    if raw_conf is None or raw_conf < 0:
        return None
    # Tesseract TSV is 0..100
    return max(0.0, min(1.0, raw_conf / 100.0))


def parse_tsv(tsv: str, confidence_floor: float = 0.0) -> List[TsvWord]:
    """
    Parse ``tesseract ... tsv`` output into word rows.

    Only level-5 (word) rows with non-empty text are kept, ordered by
    (block, paragraph, line, word).  Rows with malformed geometry are
    dropped; rows under *confidence_floor* (0..1) are filtered.
    """
    rows: List[TsvWord] = []
    reader = csv.DictReader(tsv.splitlines(), delimiter="\t", quoting=csv.QUOTE_NONE)

    for row in reader:
        # level meanings: 1=page,2=block,3=para,4=line,5=word
        try:
            level = int(row.get("level") or "0")
        except ValueError:
            continue
        if level != 5:
            continue

        text = row.get("text") or ""
        if not text.strip():
            continue

        try:
            key = (
                int(row.get("block_num") or "0"),
                int(row.get("par_num") or "0"),
                int(row.get("line_num") or "0"),
                int(row.get("word_num") or "0"),
            )
            left = int(row.get("left") or "0")
            top = int(row.get("top") or "0")
            width = int(row.get("width") or "0")
            height = int(row.get("height") or "0")
        except ValueError:
            continue

        try:
            raw_conf = float(row["conf"]) if row.get("conf") else None
        except ValueError:
            raw_conf = None

        conf = _normalize_confidence(raw_conf)
        if conf is not None and conf < confidence_floor:
            continue

        rows.append((key, text, (left, top, left + width, top + height), conf))

    rows.sort(key=lambda r: r[0])
    return rows


class TesseractRecognizer(BaseRecognizer):
    """
    OCR backend wrapping the ``tesseract`` binary.

    Usage::

        ocr = TesseractRecognizer(language="eng")
        words = ocr.recognize(page, DEFAULT_TOKENIZER)
    """

    def __init__(
        self,
        language: str = "eng",
        psm: Optional[int] = None,
        timeout_s: float = 120.0,
        confidence_floor: float = 0.0,
        binary: str = "tesseract",
    ):
        if not 0.0 <= confidence_floor <= 1.0:
            raise ValueError("confidence_floor must be within [0.0, 1.0]")
        self.language = language
        self.psm = psm
        self.timeout_s = timeout_s
        self.confidence_floor = confidence_floor
        self.binary = binary

    @property
    def name(self) -> str:
        return "tesseract"

    def build_command(self, image_file: str) -> List[str]:
        cmd = [self.binary, image_file, "stdout", "-l", self.language]
        if self.psm is not None:
            cmd.extend(["--psm", str(self.psm)])
        cmd.append("tsv")
        return cmd

    def recognize(self, page: PageModel, tokenizer: Pattern[str]) -> List[Word]:
        if page.image is None:
            raise RecognitionError(f"Page {page.page_number} has no rendered image")

        tsv = self._run(page)
        scale = page.scale or 1.0

        words: List[Word] = []
        for _, text, (x0, y0, x1, y1), conf in parse_tsv(tsv, self.confidence_floor):
            box = (x0 / scale, y0 / scale, x1 / scale, y1 / scale)
            for token, token_box in tokenize_box(text, box, tokenizer):
                words.append(
                    Word(
                        index=len(words),
                        text=token,
                        bbox=token_box,
                        page_number=page.page_number,
                        confidence=conf,
                    )
                )

        logger.debug("Page %d: OCR produced %d words", page.page_number, len(words))
        return words

    def _run(self, page: PageModel) -> str:
        fd, image_file = tempfile.mkstemp(suffix=".png", prefix="ocr_page_")
        try:
            with os.fdopen(fd, "wb") as f:
                page.image.save(f, format="PNG")

            cmd = self.build_command(image_file)
            try:
                proc = subprocess.run(
                    cmd,
                    check=False,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_s,
                )
            except FileNotFoundError as e:
                raise RecognitionError(f"{self.binary} binary not found on PATH") from e
            except subprocess.TimeoutExpired as e:
                raise RecognitionError(
                    f"OCR timed out after {self.timeout_s:.0f}s on page {page.page_number}"
                ) from e
        finally:
            try:
                os.unlink(image_file)
            except OSError:
                logger.debug("Could not remove temporary image %s", image_file)

        if proc.returncode != 0:
            raise RecognitionError(
                f"{self.binary} exited with {proc.returncode}: {proc.stderr[-500:].strip()}"
            )
        return proc.stdout

    def __repr__(self) -> str:
        return f"TesseractRecognizer(lang={self.language}, psm={self.psm})"
