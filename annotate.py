#!/usr/bin/env python3
"""
Inkshade PDF Annotator: CLI entry point.

Loads a PDF, builds the per-page text map (supplied layers, the PDF's
embedded text or Tesseract OCR), applies existing annotations and writes
the annotation list and text map as JSON.

Usage::

    python annotate.py paper.pdf paper.json
    python annotate.py scan.pdf --recognizer tesseract --lang deu --pages 1-3
    python annotate.py https://example.org/a.pdf --header "Authorization:Bearer x"
    python annotate.py paper.pdf out.json --annotations seed.json --no-ocr

Verbosity levels::

    -v 0   Quiet: warnings and errors only.
    -v 1   Normal: run summary and progress bar (default).
    -v 2   Debug: per-page cache, OCR and text-map detail.
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional, Tuple

from annotator.engine import AnnotatorCallbacks, AnnotatorConfig, AnnotatorEngine
from annotator.ocr import RECOGNIZERS, DEFAULT_TOKENIZER_PATTERN
from annotator.utils.serialization import load_annotations, load_text_layers, write_document

logger = logging.getLogger("annotator")

# Mapping from --verbose integer to logging level
_VERBOSITY_MAP = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}

EXIT_LOAD_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2


# ------------------------------------------------------------------
# Argument parsing
# ------------------------------------------------------------------


def _parse_page_range(value: str) -> Tuple[int, int]:
    """
    Parse a 1-based page range string (e.g. ``"3-10"``) into an
    inclusive ``(start, end)`` tuple.

    Raises:
        argparse.ArgumentTypeError: On malformed input.
    """
    parts = value.split("-")
    try:
        start = int(parts[0])
        end = int(parts[1]) if len(parts) > 1 else start
    except (ValueError, IndexError):
        raise argparse.ArgumentTypeError(
            f"Invalid page range '{value}'. Use N or N-M (1-based)."
        )
    if start < 1 or end < start:
        raise argparse.ArgumentTypeError(
            f"Invalid page range '{value}'. Start must be >= 1 and end >= start."
        )
    return (start, end)


def _parse_header(value: str) -> Tuple[str, str]:
    key, sep, val = value.partition(":")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"Invalid header '{value}'. Use KEY:VALUE.")
    return key.strip(), val.strip()


def _build_parser() -> argparse.ArgumentParser:
    """Construct the argument parser with all engine options."""
    p = argparse.ArgumentParser(
        description="Build the text map of a PDF and export its annotations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python annotate.py paper.pdf paper.json\n"
            "  python annotate.py scan.pdf --recognizer tesseract --pages 1-3\n"
            "  python annotate.py paper.pdf --annotations seed.json --no-ocr -v 2\n"
        ),
    )

    # -- Positional --------------------------------------------------------
    p.add_argument("source", help="Path or HTTP(S) URL of the input PDF")
    p.add_argument(
        "output",
        nargs="?",
        default=None,
        help="Output JSON file (default: stdout)",
    )

    # -- Source ------------------------------------------------------------
    source = p.add_argument_group("source")
    source.add_argument(
        "--header",
        type=_parse_header,
        action="append",
        default=[],
        metavar="KEY:VALUE",
        help="HTTP header sent when SOURCE is a URL (repeatable)",
    )
    source.add_argument(
        "--pages",
        type=_parse_page_range,
        default=None,
        metavar="N-M",
        help="Page range, 1-based inclusive (e.g. 1-10). Default: all.",
    )

    # -- Inputs ------------------------------------------------------------
    inputs = p.add_argument_group("inputs")
    inputs.add_argument(
        "--text-layer",
        default=None,
        metavar="FILE",
        help="JSON text layers to use instead of recognition for their pages",
    )
    inputs.add_argument(
        "--initial-text-map",
        default=None,
        metavar="FILE",
        help="JSON text map reported as-is in the output",
    )
    inputs.add_argument(
        "--annotations",
        default=None,
        metavar="FILE",
        help="JSON annotations to seed the store with",
    )

    # -- Recognition -------------------------------------------------------
    ocr = p.add_argument_group("recognition")
    ocr.add_argument(
        "--no-ocr",
        action="store_true",
        help="Never run text recognition",
    )
    ocr.add_argument(
        "--recognizer",
        default="auto",
        choices=list(RECOGNIZERS),
        help="auto: embedded text, else Tesseract (default: auto)",
    )
    ocr.add_argument(
        "--tokenizer",
        default=DEFAULT_TOKENIZER_PATTERN,
        metavar="REGEX",
        help=f"Word segmentation pattern (default: {DEFAULT_TOKENIZER_PATTERN})",
    )
    ocr.add_argument(
        "--lang",
        default="eng",
        help="Tesseract language code (default: eng)",
    )
    ocr.add_argument(
        "--psm",
        type=int,
        default=None,
        help="Tesseract page segmentation mode",
    )
    ocr.add_argument(
        "--raster-scale",
        type=float,
        default=2.0,
        metavar="FLOAT",
        help="Page render resolution multiplier for OCR (default: 2.0)",
    )

    # -- Output control ----------------------------------------------------
    out = p.add_argument_group("output")
    out.add_argument(
        "-v",
        "--verbose",
        type=int,
        choices=[0, 1, 2],
        default=1,
        help="Verbosity: 0=quiet, 1=normal (default), 2=debug",
    )
    out.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable tqdm progress bars",
    )

    return p


# ------------------------------------------------------------------
# Logging setup
# ------------------------------------------------------------------


def _configure_logging(verbosity: int) -> None:
    """
    Set up the ``annotator`` and ``core`` loggers.

    At verbosity 0 (WARNING), uses a minimal format. At 2 (DEBUG),
    includes timestamps and the module name.
    """
    level = _VERBOSITY_MAP.get(verbosity, logging.INFO)

    if level <= logging.DEBUG:
        fmt = "%(asctime)s %(name)s %(levelname)s: %(message)s"
        datefmt = "%H:%M:%S"
    elif level <= logging.INFO:
        fmt = "%(message)s"
        datefmt = None
    else:
        fmt = "%(levelname)s: %(message)s"
        datefmt = None

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    for name in ("annotator", "core"):
        root = logging.getLogger(name)
        root.setLevel(level)
        root.handlers.clear()
        root.addHandler(handler)

    # Suppress noisy third-party loggers regardless of verbosity
    for name in ("PIL", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


# ------------------------------------------------------------------
# Run
# ------------------------------------------------------------------


def _select_pages(page_range: Optional[Tuple[int, int]], page_count: int) -> List[int]:
    if page_range is None:
        return list(range(1, page_count + 1))
    start, end = page_range
    end = min(end, page_count)
    if start > end:
        logger.warning("Page range %d-%d is outside the document (%d pages)",
                       start, page_range[1], page_count)
    return list(range(start, end + 1))


async def _run(engine: AnnotatorEngine, page_range: Optional[Tuple[int, int]]) -> int:
    async with engine:
        if engine.load_error is not None:
            logger.error("Could not load %s: %s", engine.source.describe(), engine.load_error)
            return EXIT_LOAD_ERROR

        pages = _select_pages(page_range, engine.page_count)
        await engine.visit_all(pages)
        if engine.load_error is not None:
            logger.error("Could not load %s: %s", engine.source.describe(), engine.load_error)
            return EXIT_LOAD_ERROR
        engine.render()
    return 0


def main():
    """Parse arguments, configure logging, and run the engine."""
    parser = _build_parser()
    args = parser.parse_args()

    # Logging must be configured before any logger calls
    _configure_logging(args.verbose)
    disable_tqdm = args.no_progress or args.verbose == 0

    try:
        text_layer = load_text_layers(args.text_layer) if args.text_layer else None
        initial_text_map = (
            load_text_layers(args.initial_text_map) if args.initial_text_map else None
        )
        annotations = load_annotations(args.annotations) if args.annotations else []
    except (OSError, ValueError, KeyError, TypeError) as e:
        parser.error(f"Could not read input file: {e}")

    headers: Dict[str, str] = dict(args.header)

    config = AnnotatorConfig(
        url=args.source,
        http_headers=headers,
        tokenizer=args.tokenizer,
        disable_ocr=args.no_ocr,
        text_layer=text_layer,
        initial_text_map=initial_text_map,
        default_annotations=annotations,
        recognizer=args.recognizer,
        ocr_language=args.lang,
        ocr_psm=args.psm,
        raster_scale=args.raster_scale,
        disable_tqdm=disable_tqdm,
    )

    # Latest values pushed through the host callbacks
    latest: Dict[str, list] = {"annotations": [], "text_map": []}
    callbacks = AnnotatorCallbacks(
        on_annotations=lambda items: latest.__setitem__("annotations", items),
        on_text_map=lambda layers: latest.__setitem__("text_map", layers),
    )

    try:
        engine = AnnotatorEngine(config, callbacks)
    except ValueError as e:
        parser.error(str(e))

    if engine.configuration_error is not None:
        logger.error("%s", engine.configuration_error)
        sys.exit(EXIT_CONFIGURATION_ERROR)

    # Log run header
    logger.info("Inkshade PDF Annotator")
    logger.info("  Source:     %s", engine.source.describe())
    if args.output:
        logger.info("  Output:     %s", args.output)
    if args.pages:
        logger.info("  Pages:      %d-%d", *args.pages)
    if args.no_ocr:
        logger.info("  Recognizer: disabled")
    else:
        logger.info("  Recognizer: %s (lang=%s)", args.recognizer, args.lang)
    if annotations:
        logger.info("  Seeded:     %d annotations", len(annotations))

    status = asyncio.run(_run(engine, args.pages))
    if status:
        sys.exit(status)

    write_document(args.output, engine.page_count, latest["annotations"], latest["text_map"])


if __name__ == "__main__":
    main()
