"""Tests for the ``annotate.py`` command line and JSON serialization."""

import argparse
import json

import pytest

import annotate
from annotator.models import Annotation, Entity
from annotator.utils.serialization import load_annotations, load_text_layers, write_document
from core.document.pdf_reader import PDFDocumentReader
from core.errors import LoadError
from core.page.models import TextLayer, Word


def test_parse_page_range():
    assert annotate._parse_page_range("3") == (3, 3)
    assert annotate._parse_page_range("2-5") == (2, 5)
    for bad in ("0", "5-2", "a-b"):
        with pytest.raises(argparse.ArgumentTypeError):
            annotate._parse_page_range(bad)


def test_parse_header():
    assert annotate._parse_header("Authorization: Bearer t:k") == ("Authorization", "Bearer t:k")
    with pytest.raises(argparse.ArgumentTypeError):
        annotate._parse_header("no-colon")


def test_select_pages_clips_to_document():
    assert annotate._select_pages(None, 3) == [1, 2, 3]
    assert annotate._select_pages((2, 10), 3) == [2, 3]
    assert annotate._select_pages((5, 6), 3) == []


def test_serialization_round_trip(tmp_path):
    ann = Annotation(id="a", page_number=1, entity=Entity(name="ORG"), bbox=(1.0, 2.0, 3.0, 4.0))
    layer = TextLayer.from_words(
        1, [Word(index=0, text="ACME", bbox=(1.0, 2.0, 3.0, 4.0), page_number=1, label="ORG")]
    )
    out = tmp_path / "nested" / "doc.json"

    write_document(out, 3, [ann], [layer])

    doc = json.loads(out.read_text(encoding="utf-8"))
    assert doc["page_count"] == 3
    assert load_annotations(out) == [ann]
    assert load_text_layers(out) == [layer]


def test_main_writes_text_map(tmp_path, monkeypatch, make_pdf):
    pdf = tmp_path / "in.pdf"
    pdf.write_bytes(make_pdf(["Hello world", None, "Third page"]))
    seed = tmp_path / "seed.json"
    seed.write_text(
        json.dumps([{"id": "s", "page": 3, "label": "LOC", "bbox": [0, 0, 300, 200]}]),
        encoding="utf-8",
    )
    out = tmp_path / "out.json"

    monkeypatch.setattr(
        "sys.argv",
        [
            "annotate.py", str(pdf), str(out),
            "--recognizer", "embedded",
            "--annotations", str(seed),
            "--pages", "1-3",
            "-v", "0",
        ],
    )
    annotate.main()

    doc = json.loads(out.read_text(encoding="utf-8"))
    assert doc["page_count"] == 3
    assert [a["id"] for a in doc["annotations"]] == ["s"]

    layers = {layer["page"]: layer for layer in doc["text_map"]}
    assert sorted(layers) == [1, 2, 3]
    assert [w["text"] for w in layers[1]["words"]] == ["Hello", "world"]
    assert layers[2]["words"] == []
    assert {w.get("label") for w in layers[3]["words"]} == {"LOC"}


def test_main_exits_on_load_error(tmp_path, monkeypatch):
    bogus = tmp_path / "bogus.pdf"
    bogus.write_bytes(b"definitely not a pdf")
    monkeypatch.setattr("sys.argv", ["annotate.py", str(bogus), "--no-ocr", "-v", "0"])

    with pytest.raises(SystemExit) as exc:
        annotate.main()
    assert exc.value.code == annotate.EXIT_LOAD_ERROR


def test_main_exits_when_a_page_fails_to_decode(tmp_path, monkeypatch, make_pdf):
    pdf = tmp_path / "in.pdf"
    pdf.write_bytes(make_pdf(["Hello world", "Second"]))
    out = tmp_path / "out.json"

    def failing_decode(self, page_number, scale=2.0):
        raise LoadError(f"Failed to decode page {page_number}: damaged stream")

    monkeypatch.setattr(PDFDocumentReader, "decode_page", failing_decode)
    monkeypatch.setattr("sys.argv", ["annotate.py", str(pdf), str(out), "--no-ocr", "-v", "0"])

    with pytest.raises(SystemExit) as exc:
        annotate.main()
    assert exc.value.code == annotate.EXIT_LOAD_ERROR
    assert not out.exists()
