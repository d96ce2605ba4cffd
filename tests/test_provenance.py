"""Tests for source maps."""

from mcpconvert.provenance import SourceLocator, SourceMapBuilder

YAML_TEXT = """\
openapi: 3.0.0
info:
  title: Test API
paths:
  /items/{id}:
    get:
      operationId: getItem
      parameters:
        - name: id
          in: path
components:
  schemas:
    a/b:
      type: string
"""

JSON_TEXT = """\
{
  "openapi": "3.0.0",
  "paths": {
    "/items": {
      "get": {
        "operationId": "listItems"
      }
    }
  }
}
"""


def test_yaml_lines():
    """Test line lookup for YAML source text."""
    locator = SourceLocator(YAML_TEXT)

    assert locator.line_for("") == 1
    assert locator.line_for("/info/title") == 3
    assert locator.line_for("/paths/~1items~1{id}/get") == 7
    assert locator.line_for("/paths/~1items~1{id}/get/parameters/0") == 9
    assert locator.line_for("/components/schemas/a~1b") == 14
    assert locator.line_for("/components/schemas/Missing") is None


def test_json_lines():
    """Test line lookup for JSON source text."""
    locator = SourceLocator(JSON_TEXT)

    assert locator.line_for("/openapi") == 2
    assert locator.line_for("/paths/~1items/get") == 5


def test_missing_or_invalid_text():
    """Test that text without structure yields no line numbers."""
    assert SourceLocator(None).line_for("/paths") is None
    assert SourceLocator("key: [unclosed").line_for("/key") is None
    assert SourceLocator(YAML_TEXT).line_for("not-a-pointer") is None


def test_recursive_alias():
    """Test that a YAML alias inside its own anchor does not recurse forever."""
    locator = SourceLocator("root: &a\n  child: *a\n")

    assert locator.line_for("/root") is not None
    assert locator.line_for("/root/child/child") is None


def test_builder_entries():
    """Test that recorded entries serialize with camelCase keys."""
    builder = SourceMapBuilder(SourceLocator(YAML_TEXT))

    builder.record("tools[0]", "/paths/~1items~1{id}/get")
    builder.record("schemas.Missing", "/components/schemas/Missing")

    assert builder.entries["tools[0]"].source_line == 7
    assert builder.to_dict() == {
        "tools[0]": {"sourcePath": "/paths/~1items~1{id}/get", "sourceLine": 7},
        "schemas.Missing": {"sourcePath": "/components/schemas/Missing", "sourceLine": None},
    }
