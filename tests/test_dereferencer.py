"""Tests for the local OpenAPI dereferencer."""

import pytest

from mcpconvert.dereferencer import (
    LocalDereferencer,
    escape_token,
    join_pointer,
    split_pointer,
    unescape_token,
)
from mcpconvert.exceptions import DereferenceError


def test_pointer_tokens():
    """Test escaping and splitting of JSON pointer tokens."""
    assert escape_token("a/b~c") == "a~1b~0c"
    assert unescape_token("a~1b~0c") == "a/b~c"
    assert join_pointer("paths", "/pets/{id}", "get") == "/paths/~1pets~1{id}/get"
    assert split_pointer("/paths/~1pets~1{id}/get") == ("paths", "/pets/{id}", "get")
    assert split_pointer("") == ()

    with pytest.raises(DereferenceError):
        split_pointer("paths/pets")


def test_resolve_pointer():
    """Test resolving pointers through mappings and lists."""
    spec = {"paths": {"/a": {"get": {"parameters": [{"name": "x"}, {"name": "y"}]}}}}
    dereferencer = LocalDereferencer(spec)

    assert dereferencer.resolve_pointer("/paths/~1a/get/parameters/1") == {"name": "y"}

    with pytest.raises(DereferenceError):
        dereferencer.resolve_pointer("/paths/~1a/get/parameters/5")
    with pytest.raises(DereferenceError):
        dereferencer.resolve_pointer("/paths/~1missing")


def test_resolve_parameter_reference():
    """Test that a parameter reference is replaced by its target."""
    spec = {"components": {"parameters": {"limit": {"name": "limit", "in": "query"}}}}
    dereferencer = LocalDereferencer(spec)

    assert dereferencer.resolve({"$ref": "#/components/parameters/limit"}) == {"name": "limit", "in": "query"}
    assert dereferencer.resolve({"name": "inline"}) == {"name": "inline"}


def test_reference_chain():
    """Test that references to references are followed."""
    spec = {
        "components": {
            "requestBodies": {
                "Alias": {"$ref": "#/components/requestBodies/Real"},
                "Real": {"content": {}},
            }
        }
    }

    result = LocalDereferencer(spec).resolve({"$ref": "#/components/requestBodies/Alias"})

    assert result == {"content": {}}


def test_overriding_siblings():
    """Test that summary and description next to a reference override the target."""
    spec = {
        "paths": {
            "/base": {"summary": "Base", "get": {"summary": "Base endpoint"}},
            "/extended": {
                "$ref": "#/paths/~1base",
                "summary": "Extended",
                "description": "Extended endpoint",
                "servers": [{"url": "https://api.example.com"}],
            },
        }
    }

    result = LocalDereferencer(spec).resolve(spec["paths"]["/extended"])

    assert "get" in result
    assert result["summary"] == "Extended"
    assert result["description"] == "Extended endpoint"
    assert "servers" not in result
    assert spec["paths"]["/base"]["summary"] == "Base"


def test_circular_reference_error():
    """Test that reference cycles raise instead of recursing forever."""
    spec = {
        "components": {
            "parameters": {
                "a": {"$ref": "#/components/parameters/b"},
                "b": {"$ref": "#/components/parameters/a"},
            }
        }
    }

    with pytest.raises(DereferenceError):
        LocalDereferencer(spec).resolve({"$ref": "#/components/parameters/a"})


def test_invalid_references():
    """Test that external, dangling and non-object references raise."""
    spec = {"paths": {"/valid": {"get": {}}}, "x-value": 3}
    dereferencer = LocalDereferencer(spec)

    with pytest.raises(DereferenceError):
        dereferencer.resolve({"$ref": "#/paths/nonexistent"})
    with pytest.raises(DereferenceError):
        dereferencer.resolve({"$ref": "common.yaml#/parameters/limit"})
    with pytest.raises(DereferenceError):
        dereferencer.resolve({"$ref": "#/x-value"})
