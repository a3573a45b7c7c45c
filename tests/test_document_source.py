"""Tests for document source validation and byte resolution."""

import pytest

from core.document.source import MISSING_SOURCE_MESSAGE, DocumentSource
from core.errors import ConfigurationError, LoadError


def test_missing_source_is_a_configuration_error():
    source = DocumentSource()
    assert not source.is_configured
    assert source.kind == "missing"
    with pytest.raises(ConfigurationError) as exc:
        source.validate()
    assert str(exc.value) == MISSING_SOURCE_MESSAGE


def test_empty_data_without_url_is_not_configured():
    with pytest.raises(ConfigurationError):
        DocumentSource(data=b"").validate()


def test_data_takes_precedence_over_url():
    source = DocumentSource(url="/does/not/exist.pdf", data=b"%PDF-raw")
    assert source.kind == "data"
    assert source.read_bytes() == b"%PDF-raw"


def test_binary_string_data_is_latin1_encoded():
    assert DocumentSource(data="%PDF\xe2\xe3").read_bytes() == b"%PDF\xe2\xe3"


def test_non_binary_string_data_is_a_load_error():
    with pytest.raises(LoadError):
        DocumentSource(data="€ uro").read_bytes()


def test_plain_path_and_file_url(tmp_path, three_page_pdf):
    path = tmp_path / "doc.pdf"
    path.write_bytes(three_page_pdf)

    assert DocumentSource(url=str(path)).read_bytes() == three_page_pdf
    assert DocumentSource(url=path.as_uri()).read_bytes() == three_page_pdf


def test_unreadable_path_is_a_load_error(tmp_path):
    with pytest.raises(LoadError):
        DocumentSource(url=str(tmp_path / "missing.pdf")).read_bytes()


def test_unsupported_scheme_is_a_load_error():
    with pytest.raises(LoadError):
        DocumentSource(url="ftp://example.org/doc.pdf").read_bytes()


def test_describe():
    assert DocumentSource(data=b"abcd").describe() == "<4 bytes of data>"
    assert DocumentSource(url="a.pdf").describe() == "a.pdf"
    assert DocumentSource().describe() == "<missing>"
