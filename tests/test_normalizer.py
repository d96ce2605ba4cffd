"""Tests for version normalization."""

import copy

from mcpconvert.normalizer import REF_SIBLINGS_MARKER, VersionNormalizer, normalize_document


def make_spec(schemas, openapi="3.1.0"):
    return {
        "openapi": openapi,
        "info": {"title": "Test API", "version": "1.0.0"},
        "paths": {},
        "components": {"schemas": schemas},
    }


def test_type_array_with_null():
    """Test that [T, "null"] becomes T with nullable, in either order."""
    spec = make_spec({
        "A": {"type": ["string", "null"]},
        "B": {"type": ["null", "integer"], "format": "int32"},
    })

    result, warnings = normalize_document(spec)

    assert result["components"]["schemas"]["A"] == {"type": "string", "nullable": True}
    assert result["components"]["schemas"]["B"] == {"type": "integer", "format": "int32", "nullable": True}
    assert warnings == []


def test_type_array_other_shapes():
    """Test single-entry, null-only and multi-type arrays."""
    spec = make_spec({
        "Single": {"type": ["integer"]},
        "OnlyNull": {"type": ["null"]},
        "Multi": {"type": ["string", "integer", "null"]},
    })

    result, warnings = normalize_document(spec)
    schemas = result["components"]["schemas"]

    assert schemas["Single"] == {"type": "integer"}
    assert schemas["OnlyNull"] == {"nullable": True}
    assert schemas["Multi"] == {"type": "string", "nullable": True}
    assert len(warnings) == 1
    assert warnings[0].startswith("/components/schemas/Multi: ")


def test_nested_schemas_are_normalized():
    """Test that properties, items and composition members are walked."""
    spec = make_spec({
        "Pet": {
            "type": "object",
            "properties": {
                "tags": {"type": "array", "items": {"type": ["string", "null"]}},
                "owner": {"anyOf": [{"type": ["integer", "null"]}]},
                # a property literally named "type"
                "type": {"type": ["string", "null"]},
            },
        }
    })

    result, _ = normalize_document(spec)
    properties = result["components"]["schemas"]["Pet"]["properties"]

    assert properties["tags"]["items"] == {"type": "string", "nullable": True}
    assert properties["owner"]["anyOf"][0] == {"type": "integer", "nullable": True}
    assert properties["type"] == {"type": "string", "nullable": True}


def test_parameter_and_body_schemas_are_normalized():
    """Test that schemas reached through operations are rewritten."""
    spec = make_spec({})
    spec["paths"] = {
        "/items": {
            "post": {
                "parameters": [{"name": "q", "in": "query", "schema": {"type": ["string", "null"]}}],
                "requestBody": {
                    "content": {"application/json": {"schema": {"type": ["object", "null"]}}}
                },
            }
        }
    }

    result, _ = normalize_document(spec)
    operation = result["paths"]["/items"]["post"]

    assert operation["parameters"][0]["schema"] == {"type": "string", "nullable": True}
    assert operation["requestBody"]["content"]["application/json"]["schema"] == {
        "type": "object",
        "nullable": True,
    }


def test_literal_values_untouched():
    """Test that examples, defaults and enums are copied as they are."""
    literal = {"type": ["string", "null"], "$ref": "#/components/schemas/Missing", "x": 1}
    spec = make_spec({
        "A": {
            "type": "object",
            "example": copy.deepcopy(literal),
            "default": copy.deepcopy(literal),
            "enum": [copy.deepcopy(literal)],
        }
    })

    result, warnings = normalize_document(spec)
    schema = result["components"]["schemas"]["A"]

    assert schema["example"] == literal
    assert schema["default"] == literal
    assert schema["enum"] == [literal]
    assert warnings == []


def test_x_nullable():
    """Test that the Swagger 2 x-nullable extension becomes nullable."""
    spec = {
        "swagger": "2.0",
        "info": {"title": "Test API", "version": "1.0.0"},
        "paths": {},
        "definitions": {
            "A": {"type": "string", "x-nullable": True},
            "B": {"type": "string", "x-nullable": False},
            "C": {"type": "string", "x-nullable": "yes"},
        },
    }

    result, warnings = normalize_document(spec)
    definitions = result["definitions"]

    assert definitions["A"] == {"type": "string", "nullable": True}
    assert definitions["B"] == {"type": "string", "nullable": False}
    assert definitions["C"] == {"type": "string"}
    assert len(warnings) == 1


def test_reference_with_siblings():
    """Test that a reference with siblings becomes a marked two-member allOf."""
    spec = make_spec({
        "Base": {"type": "object"},
        "Derived": {"$ref": "#/components/schemas/Base", "description": "Derived thing"},
    })

    result, warnings = normalize_document(spec)

    assert result["components"]["schemas"]["Derived"] == {
        "allOf": [{"$ref": "#/components/schemas/Base"}, {"description": "Derived thing"}],
        REF_SIBLINGS_MARKER: True,
    }
    assert warnings == []


def test_bare_reference_untouched():
    """Test that a reference without siblings is left alone."""
    spec = make_spec({
        "Base": {"type": "object"},
        "Alias": {"$ref": "#/components/schemas/Base"},
    })

    result, _ = normalize_document(spec)

    assert result["components"]["schemas"]["Alias"] == {"$ref": "#/components/schemas/Base"}


def test_unresolvable_reference_with_siblings_dropped():
    """Test that external and dangling references with siblings keep only the siblings."""
    spec = make_spec({
        "External": {"$ref": "other.yaml#/Pet", "description": "From elsewhere"},
        "Dangling": {"$ref": "#/components/schemas/Missing", "type": "string"},
    })

    result, warnings = normalize_document(spec)
    schemas = result["components"]["schemas"]

    assert schemas["External"] == {"description": "From elsewhere"}
    assert schemas["Dangling"] == {"type": "string"}
    assert len(warnings) == 2


def test_non_schema_references_untouched():
    """Test that parameter references with siblings are not rewritten."""
    spec = make_spec({})
    spec["paths"] = {
        "/items": {
            "get": {
                "parameters": [{"$ref": "#/components/parameters/limit", "description": "Override"}]
            }
        }
    }

    result, warnings = normalize_document(spec)

    assert result["paths"]["/items"]["get"]["parameters"][0] == {
        "$ref": "#/components/parameters/limit",
        "description": "Override",
    }
    assert warnings == []


def test_input_not_mutated():
    """Test that the input document is left unchanged."""
    spec = make_spec({
        "A": {"type": ["string", "null"]},
        "B": {"$ref": "#/components/schemas/A", "description": "B"},
    })
    original = copy.deepcopy(spec)

    normalize_document(spec)

    assert spec == original


def test_malformed_node_reported():
    """Test that normalization records a warning instead of raising."""
    spec = make_spec({"A": {"type": [1, "null"]}})

    normalizer = VersionNormalizer(spec)
    result = normalizer.normalize()

    assert result["components"]["schemas"]["A"] == {"type": [1, "null"]}
    assert len(normalizer.warnings) == 1
    assert "malformed" in normalizer.warnings[0]
