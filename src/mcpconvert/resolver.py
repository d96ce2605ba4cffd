"""
Schema resolver: converts normalized OpenAPI schemas into MCP schema nodes.

References into the schema registry are inlined. A reference already being
resolved on the current call path is left as a ``ReferenceNode`` stub, which is
the only way an unresolved reference reaches the output. A nested reference
missing from the registry becomes an ``ErrorNode`` in its own slot.
"""

import copy
from typing import Any, Dict, List, Optional

import structlog

from .context import ConversionContext, ReferenceGuard, schema_id_from_ref, schema_ref
from .exceptions import UnresolvableReferenceError
from .models import (
    COMPOSITION_OPERATORS,
    CONSTRAINT_KEYS,
    ArrayNode,
    CompositionNode,
    Discriminator,
    ErrorNode,
    ObjectNode,
    PrimitiveNode,
    ReferenceNode,
    SchemaNode,
)
from .normalizer import REF_SIBLINGS_MARKER
from .type_mapper import map_type

logger = structlog.get_logger(__name__)

STRUCTURE_KEYS = ("properties", "items")
STRUCTURAL_PART_KEYS = ("type", "properties", "required", "items")
# Keys a referencing node may set on a cycle stub
STUB_SIBLING_KEYS = ("nullable", "deprecated", "description")


def _null_branch(schema: Any) -> bool:
    return isinstance(schema, dict) and schema.get("type") == "null" and len(schema) == 1


def _nullable_member(schema: Dict[str, Any]) -> Optional[Any]:
    """Return T for a two-member ``anyOf``/``oneOf`` of ``{type: null}`` and T."""
    for operator in ("anyOf", "oneOf"):
        members = schema.get(operator)
        if not isinstance(members, list) or len(members) != 2:
            continue
        non_null = [member for member in members if not _null_branch(member)]
        if len(non_null) == 1:
            return non_null[0]
    return None


class SchemaResolver:
    """Converts schemas of one document, resolving references against its registry."""

    def __init__(self, context: ConversionContext):
        """Initialize the resolver.

        Args:
            context: Registry and guard of the document being converted
        """
        self.context = context
        self.warnings: List[str] = []

    def convert(self, schema: Any, guard: Optional[ReferenceGuard] = None) -> SchemaNode:
        """Convert a schema into a schema node.

        Args:
            schema: A normalized OpenAPI schema
            guard: Reference guard of the active call path. Defaults to the context's.

        Returns:
            The converted node

        Raises:
            UnresolvableReferenceError: If a reference names a schema missing from the registry
        """
        return self._convert(schema, self.context.guard if guard is None else guard)

    def convert_named(self, name: str, guard: Optional[ReferenceGuard] = None) -> SchemaNode:
        """Convert the registry schema ``name`` as if it were referenced.

        The schema's own name is guarded while it is converted, so a schema that
        refers back to itself yields a stub at the first re-entry.
        """
        guard = self.context.guard if guard is None else guard
        return self._convert_reference(schema_ref(name), {}, guard)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning("Schema conversion warning.", detail=message)

    def _convert_child(self, schema: Any, guard: ReferenceGuard, fragment: bool = False) -> SchemaNode:
        """Convert a nested schema, leaving an error node where a reference cannot be resolved."""
        try:
            return self._convert(schema, guard, fragment)
        except UnresolvableReferenceError as e:
            self._warn(f"{e}; replaced by an error node")
            return ErrorNode.for_reference(e.ref)

    def _convert(self, schema: Any, guard: ReferenceGuard, fragment: bool = False) -> SchemaNode:
        if not isinstance(schema, dict):
            # boolean schemas and missing schemas accept anything
            return PrimitiveNode(type=map_type(None))

        if schema.get(REF_SIBLINGS_MARKER) is True:
            return self._convert_ref_extension(schema, guard)

        if "$ref" in schema:
            siblings = {key: value for key, value in schema.items() if key != "$ref"}
            return self._convert_reference(schema["$ref"], siblings, guard)

        member = _nullable_member(schema)
        if member is not None:
            return self._convert_nullable_union(schema, member, guard)

        operators = [op for op in COMPOSITION_OPERATORS if isinstance(schema.get(op), list)]
        if operators:
            return self._convert_composition(schema, operators, guard)

        return self._convert_structure(schema, guard, fragment)

    # References

    def _convert_ref_extension(self, schema: Dict[str, Any], guard: ReferenceGuard) -> SchemaNode:
        members = schema.get("allOf")
        if (
            isinstance(members, list)
            and len(members) == 2
            and isinstance(members[0], dict)
            and set(members[0]) == {"$ref"}
            and isinstance(members[1], dict)
        ):
            return self._convert_reference(members[0]["$ref"], members[1], guard)

        self._warn("malformed reference extension converted as a plain composition")
        plain = {key: value for key, value in schema.items() if key != REF_SIBLINGS_MARKER}
        return self._convert(plain, guard)

    def _convert_reference(self, ref: Any, siblings: Dict[str, Any], guard: ReferenceGuard) -> SchemaNode:
        schema_id = schema_id_from_ref(ref)
        if schema_id is None:
            return self._convert_external_reference(ref, siblings, guard)

        if schema_id in guard:
            return self._stub(ReferenceNode(reference=schema_id), siblings)

        with guard.acquire(schema_id):
            target = self.context.lookup(schema_id, ref)
            # converting with the id held follows ref-to-ref chains until a
            # concrete node or a re-entry is reached
            resolved = self._convert(target, guard)
            if isinstance(resolved, ReferenceNode):
                return self._stub(resolved, siblings)
            if siblings:
                self._merge_siblings(resolved, siblings, guard)
        return resolved

    @staticmethod
    def _stub(stub: ReferenceNode, siblings: Dict[str, Any]) -> SchemaNode:
        """Carry a referencing node's nullable, deprecated and description onto a cycle stub.

        A bare reference renders without annotations, so the stub is wrapped in a
        single-member allOf when any of them is present.
        """
        if not any(key in siblings for key in STUB_SIBLING_KEYS):
            return stub
        result = CompositionNode(operator="allOf", members=[stub])
        if "nullable" in siblings:
            result.nullable = bool(siblings["nullable"])
        if "deprecated" in siblings:
            result.deprecated = bool(siblings["deprecated"])
        if isinstance(siblings.get("description"), str):
            result.description = siblings["description"]
        return result

    def _convert_external_reference(self, ref: Any, siblings: Dict[str, Any], guard: ReferenceGuard) -> SchemaNode:
        self._warn(f"reference {ref!r} is outside the schema registry and was not resolved")
        if siblings:
            return self._convert(siblings, guard)
        return ObjectNode(description=f"Unresolved external reference: {ref}")

    def _merge_siblings(self, resolved: SchemaNode, siblings: Dict[str, Any], guard: ReferenceGuard) -> None:
        """Merge sibling keys of a reference onto its resolved node.

        Only keys the resolved node lacks are added. ``nullable`` and
        ``deprecated`` given on the reference override the target's value.
        """
        if "nullable" in siblings:
            resolved.nullable = bool(siblings["nullable"])
        if "deprecated" in siblings:
            resolved.deprecated = bool(siblings["deprecated"])
        if resolved.description is None and isinstance(siblings.get("description"), str):
            resolved.description = siblings["description"]

        if resolved.type is None and "type" in siblings:
            resolved.type = map_type(siblings["type"])
        if resolved.format is None and isinstance(siblings.get("format"), str):
            resolved.format = siblings["format"]
        if resolved.enum is None and isinstance(siblings.get("enum"), list):
            resolved.enum = copy.deepcopy(siblings["enum"])
        for key in CONSTRAINT_KEYS:
            if key in siblings and key not in resolved.constraints:
                resolved.constraints[key] = copy.deepcopy(siblings[key])

        if isinstance(resolved, ObjectNode):
            if not resolved.properties and isinstance(siblings.get("properties"), dict):
                resolved.properties = self._convert_properties(siblings["properties"], guard)
            if not resolved.required and isinstance(siblings.get("required"), list):
                resolved.required = [name for name in siblings["required"] if isinstance(name, str)]
        elif isinstance(resolved, ArrayNode):
            if resolved.items is None and isinstance(siblings.get("items"), dict):
                resolved.items = self._convert_child(siblings["items"], guard)
        for key in STRUCTURE_KEYS + COMPOSITION_OPERATORS:
            if key in siblings and not self._accepts(resolved, key):
                self._warn(f"sibling {key!r} not merged onto resolved {resolved.kind} schema")

    @staticmethod
    def _accepts(node: SchemaNode, key: str) -> bool:
        if key == "properties":
            return isinstance(node, ObjectNode)
        if key == "items":
            return isinstance(node, ArrayNode)
        return False

    # Nullability and composition

    def _convert_nullable_union(self, schema: Dict[str, Any], member: Any, guard: ReferenceGuard) -> SchemaNode:
        result = self._convert_child(member, guard)
        if isinstance(result, ReferenceNode):
            result = CompositionNode(operator="allOf", members=[result])
        result.nullable = True
        if isinstance(schema.get("description"), str):
            result.description = schema["description"]
        if "deprecated" in schema:
            result.deprecated = bool(schema["deprecated"])
        return result

    def _convert_composition(self, schema: Dict[str, Any], operators: List[str], guard: ReferenceGuard) -> SchemaNode:
        compositions = [self._composition(schema, operator, guard) for operator in operators]
        has_structure = any(key in schema for key in STRUCTURE_KEYS)

        if len(compositions) == 1 and not has_structure:
            result = compositions[0]
            if "type" in schema:
                result.type = map_type(schema["type"])
            self._apply_annotations(result, schema)
            return result

        # own structure alongside a composition, or several operators: AND them together
        members: List[SchemaNode] = []
        if has_structure:
            structural = {key: schema[key] for key in STRUCTURAL_PART_KEYS if key in schema}
            members.append(self._convert_structure(structural, guard, fragment=True))
        members.extend(compositions)
        result = CompositionNode(operator="allOf", members=members)
        self._apply_annotations(result, schema)
        return result

    def _composition(self, schema: Dict[str, Any], operator: str, guard: ReferenceGuard) -> CompositionNode:
        members = [self._convert_child(member, guard, fragment=True) for member in schema[operator]]
        result = CompositionNode(operator=operator, members=members)
        discriminator = schema.get("discriminator")
        if operator == "oneOf" and isinstance(discriminator, dict) and isinstance(discriminator.get("propertyName"), str):
            mapping = discriminator.get("mapping")
            result.discriminator = Discriminator(
                property_name=discriminator["propertyName"],
                mapping={str(k): str(v) for k, v in mapping.items()} if isinstance(mapping, dict) else None,
            )
        return result

    # Objects, arrays and primitives

    def _convert_structure(self, schema: Dict[str, Any], guard: ReferenceGuard, fragment: bool = False) -> SchemaNode:
        """Convert an object, array or primitive schema.

        A composition member without a ``type`` is a fragment of its siblings and
        keeps its type unset. One that lists ``required`` is still an object.
        """
        source_type = schema.get("type")
        if (
            source_type == "object"
            or isinstance(schema.get("properties"), dict)
            or (source_type is None and isinstance(schema.get("required"), list))
        ):
            result: SchemaNode = ObjectNode(
                properties=self._convert_properties(schema.get("properties"), guard),
                required=[name for name in schema.get("required", []) if isinstance(name, str)]
                if isinstance(schema.get("required"), list)
                else [],
            )
        elif source_type == "array":
            items = schema.get("items")
            result = ArrayNode(items=self._convert_child(items, guard) if isinstance(items, dict) else None)
        else:
            result = PrimitiveNode(type=map_type(source_type))
        if fragment and source_type is None:
            result.type = None
        self._apply_annotations(result, schema)
        return result

    def _convert_properties(self, properties: Any, guard: ReferenceGuard) -> Dict[str, SchemaNode]:
        if not isinstance(properties, dict):
            return {}
        # siblings share the guard so cycles through a common ancestor are caught
        return {str(name): self._convert_child(prop, guard) for name, prop in properties.items()}

    @staticmethod
    def _apply_annotations(node: SchemaNode, schema: Dict[str, Any]) -> None:
        if isinstance(schema.get("format"), str):
            node.format = schema["format"]
        if isinstance(schema.get("enum"), list):
            node.enum = copy.deepcopy(schema["enum"])
        if node.description is None and isinstance(schema.get("description"), str):
            node.description = schema["description"]
        if "nullable" in schema:
            node.nullable = bool(schema["nullable"])
        if "deprecated" in schema:
            node.deprecated = bool(schema["deprecated"])
        for key in CONSTRAINT_KEYS:
            if key in schema:
                node.constraints[key] = copy.deepcopy(schema[key])
