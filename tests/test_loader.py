"""Tests for document loading."""

import json

import pytest

from mcpconvert.exceptions import DocumentError
from mcpconvert.loader import detect_version, load_document, parse_text

SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Test API", "version": "1.0.0"},
    "paths": {},
}


def test_load_json_text():
    """Test loading JSON text."""
    text = json.dumps(SPEC)

    loaded = load_document(text)

    assert loaded.data == SPEC
    assert loaded.text == text


def test_load_yaml_text():
    """Test loading YAML text."""
    yaml_str = """
    openapi: 3.0.0
    info:
      title: Test API
      version: 1.0.0
    paths:
      /test:
        get:
          summary: Test endpoint
    """

    loaded = load_document(yaml_str)

    assert loaded.data["info"]["title"] == "Test API"
    assert loaded.data["paths"]["/test"]["get"]["summary"] == "Test endpoint"


def test_load_bytes_with_bom():
    """Test that UTF-8 bytes with a byte order mark are accepted."""
    loaded = load_document(b"\xef\xbb\xbf" + json.dumps(SPEC).encode("utf-8"))

    assert loaded.data == SPEC


def test_load_file(tmp_path):
    """Test loading from a path."""
    path = tmp_path / "spec.yaml"
    path.write_text("swagger: '2.0'\ninfo:\n  title: Legacy\npaths: {}\n", encoding="utf-8")

    loaded = load_document(path)

    assert loaded.data["swagger"] == "2.0"
    assert loaded.text.startswith("swagger")


def test_load_mapping():
    """Test that a decoded mapping is validated and passed through."""
    loaded = load_document(SPEC)

    assert loaded.data is SPEC
    assert loaded.text is None


def test_missing_file(tmp_path):
    """Test that an unreadable file raises DocumentError."""
    with pytest.raises(DocumentError):
        load_document(tmp_path / "missing.yaml")


def test_size_limit():
    """Test that documents over the byte limit are rejected."""
    text = json.dumps(SPEC)

    with pytest.raises(DocumentError):
        load_document(text, max_bytes=len(text) - 1)
    assert load_document(text, max_bytes=len(text)).data == SPEC


@pytest.mark.parametrize(
    "content",
    [
        "key: [unclosed",
        "- just\n- a\n- list\n",
        "plain scalar",
        b"\xff\xfe\x00bad",
    ],
)
def test_invalid_documents(content):
    """Test that unparsable, non-mapping and non-UTF-8 input raises DocumentError."""
    with pytest.raises(DocumentError):
        load_document(content)


def test_parse_text_prefers_json():
    """Test that JSON text is parsed as JSON."""
    assert parse_text('{"a": 1}') == {"a": 1}
    assert parse_text("a: 1") == {"a": 1}


@pytest.mark.parametrize(
    "document, expected",
    [
        ({"openapi": "3.0.3"}, "3.0.3"),
        ({"openapi": "3.1.0"}, "3.1.0"),
        ({"swagger": "2.0"}, "2.0"),
        ({"swagger": 2.0}, "2.0"),
    ],
)
def test_detect_version(document, expected):
    """Test supported version detection."""
    assert detect_version(document) == expected


@pytest.mark.parametrize("document", [{}, {"swagger": "1.2"}, {"openapi": "4.0.0"}, {"info": {}}])
def test_unsupported_versions(document):
    """Test that missing and unsupported versions raise DocumentError."""
    with pytest.raises(DocumentError):
        detect_version(document)
