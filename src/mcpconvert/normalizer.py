"""
Version normalization for OpenAPI documents.

Rewrites a decoded copy of a Swagger 2.0 / OpenAPI 3.0 / 3.1 document so that
version-specific constructs reach the resolver in a single shape:

- ``type: [T, "null"]`` (3.1) becomes ``type: T`` with ``nullable: true``
- ``x-nullable`` (Swagger 2 extension) becomes ``nullable``
- a schema ``$ref`` with sibling keys becomes a two-member ``allOf`` holding the
  bare reference and the siblings, marked as a reference extension

Normalization never raises. Malformed nodes are left as they are and reported
through ``warnings``.
"""

import copy
from typing import Any, Dict, List, Tuple

import structlog

from .context import schema_id_from_ref, schema_registry
from .dereferencer import join_pointer

logger = structlog.get_logger(__name__)

REF_SIBLINGS_MARKER = "x-mcpconvert-ref-siblings"

# Keys whose value is a single schema (or, for items/prefixItems, a list of them)
SCHEMA_KEYS = frozenset({
    "schema",
    "items",
    "additionalItems",
    "additionalProperties",
    "not",
    "contains",
    "propertyNames",
    "if",
    "then",
    "else",
    "unevaluatedItems",
    "unevaluatedProperties",
})
SCHEMA_LIST_KEYS = frozenset({"allOf", "anyOf", "oneOf", "prefixItems"})
# Keys whose value maps names to schemas
SCHEMA_MAP_KEYS = frozenset({"properties", "patternProperties", "$defs", "definitions", "dependentSchemas"})
# Literal instance data, never rewritten
LITERAL_KEYS = frozenset({"example", "examples", "default", "enum", "const"})

_DOCUMENT = "document"
_SCHEMA = "schema"
_SCHEMA_MAP = "schema_map"


class VersionNormalizer:
    """Normalizes version-specific schema constructs in a copy of a document."""

    def __init__(self, document: Dict[str, Any]):
        """Initialize the normalizer.

        Args:
            document: The decoded OpenAPI document. It is never modified.
        """
        self.document = document
        self.warnings: List[str] = []
        self._schema_ids = set(schema_registry(document)) if isinstance(document, dict) else set()

    def normalize(self) -> Dict[str, Any]:
        """Return a normalized deep copy of the document."""
        self.warnings = []
        result = copy.deepcopy(self.document)
        return self._walk(result, (), _DOCUMENT)

    def _warn(self, path: tuple, message: str) -> None:
        pointer = join_pointer(*path) or "/"
        self.warnings.append(f"{pointer}: {message}")
        logger.warning("Normalization warning.", pointer=pointer, detail=message)

    def _child_kind(self, kind: str, key: Any) -> str:
        if kind == _SCHEMA_MAP:
            return _SCHEMA
        if kind == _SCHEMA:
            if key in SCHEMA_KEYS or key in SCHEMA_LIST_KEYS:
                return _SCHEMA
            if key in SCHEMA_MAP_KEYS:
                return _SCHEMA_MAP
            return _DOCUMENT
        if key == "schema":
            return _SCHEMA
        if key in ("schemas", "definitions"):
            return _SCHEMA_MAP
        return _DOCUMENT

    def _walk(self, node: Any, path: tuple, kind: str) -> Any:
        if isinstance(node, list):
            return [self._walk(item, path + (index,), kind) for index, item in enumerate(node)]
        if not isinstance(node, dict):
            return node

        for key, value in list(node.items()):
            if kind != _SCHEMA_MAP and key in LITERAL_KEYS:
                continue
            node[key] = self._walk(value, path + (key,), self._child_kind(kind, key))

        if kind == _SCHEMA_MAP:
            return node
        try:
            self._normalize_type(node, path)
            self._normalize_x_nullable(node, path)
            if kind == _SCHEMA and "$ref" in node and len(node) > 1:
                return self._rewrite_ref_siblings(node, path)
        except (TypeError, ValueError, AttributeError) as e:
            self._warn(path, f"skipped malformed node: {e}")
        return node

    def _normalize_type(self, node: Dict[str, Any], path: tuple) -> None:
        types = node.get("type")
        if not isinstance(types, list):
            return

        non_null = [t for t in types if t != "null"]
        has_null = len(non_null) != len(types)
        if non_null and not isinstance(non_null[0], str):
            raise TypeError(f"type entry {non_null[0]!r} is not a string")
        if len(non_null) > 1:
            self._warn(path, f"type array {types!r} reduced to {non_null[0]!r}")

        if non_null:
            node["type"] = non_null[0]
        else:
            del node["type"]
        if has_null:
            node["nullable"] = True

    def _normalize_x_nullable(self, node: Dict[str, Any], path: tuple) -> None:
        if "x-nullable" not in node:
            return
        value = node.pop("x-nullable")
        if isinstance(value, bool):
            node.setdefault("nullable", value)
        else:
            self._warn(path, f"ignored non-boolean x-nullable {value!r}")

    def _rewrite_ref_siblings(self, node: Dict[str, Any], path: tuple) -> Dict[str, Any]:
        ref = node["$ref"]
        siblings = {key: value for key, value in node.items() if key != "$ref"}

        schema_id = schema_id_from_ref(ref)
        if schema_id is None or schema_id not in self._schema_ids:
            self._warn(path, f"dropped unresolvable reference {ref!r} with sibling keys")
            return siblings

        return {"allOf": [{"$ref": ref}, siblings], REF_SIBLINGS_MARKER: True}


def normalize_document(document: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Normalize a document.

    Args:
        document: The decoded OpenAPI document

    Returns:
        Tuple of (normalized copy, list of warnings)
    """
    normalizer = VersionNormalizer(document)
    return normalizer.normalize(), normalizer.warnings
