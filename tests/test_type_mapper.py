"""Tests for OpenAPI type mapping."""

import pytest

from mcpconvert.type_mapper import DEFAULT_TYPE, map_type


@pytest.mark.parametrize("source_type", ["integer", "number", "boolean", "array", "object", "string"])
def test_known_types_map_to_themselves(source_type):
    """Test that supported types are passed through unchanged."""
    assert map_type(source_type) == source_type


@pytest.mark.parametrize("source_type", [None, "file", "null", "", "Integer", 42, ["string", "null"]])
def test_other_values_map_to_string(source_type):
    """Test that unknown, missing and non-string types fall back to string."""
    assert map_type(source_type) == "string"
    assert DEFAULT_TYPE == "string"
