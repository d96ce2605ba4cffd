"""
Data models for OpenAPI to MCP conversion.

Schema nodes form a closed tagged union on the ``kind`` field. Every node renders
its MCP JSON shape through ``to_schema()``.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .dereferencer import escape_token

MCP_SCHEMA = "mcp"
MCP_VERSION = "0.1.0"
SCHEMA_POINTER_PREFIX = "#/schemas/"

COMPOSITION_OPERATORS = ("oneOf", "anyOf", "allOf")
CONSTRAINT_KEYS = (
    "title",
    "default",
    "pattern",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "minLength",
    "maxLength",
    "minItems",
    "maxItems",
    "uniqueItems",
    "example",
)


class SchemaNodeBase(BaseModel):
    """Attributes shared by every schema node."""

    type: Optional[str] = None
    format: Optional[str] = None
    description: Optional[str] = None
    nullable: Optional[bool] = None
    deprecated: Optional[bool] = None
    enum: Optional[List[Any]] = None
    constraints: Dict[str, Any] = Field(default_factory=dict)

    def _common_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {}
        if self.type is not None:
            schema["type"] = self.type
        if self.format is not None:
            schema["format"] = self.format
        if self.description is not None:
            schema["description"] = self.description
        if self.nullable is not None:
            schema["nullable"] = self.nullable
        if self.deprecated is not None:
            schema["deprecated"] = self.deprecated
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        schema.update(self.constraints)
        return schema


class PrimitiveNode(SchemaNodeBase):
    """A scalar schema: string, integer, number or boolean."""

    kind: Literal["primitive"] = "primitive"

    def to_schema(self) -> Dict[str, Any]:
        return self._common_schema()


class ObjectNode(SchemaNodeBase):
    """An object schema with ordered named properties."""

    kind: Literal["object"] = "object"
    type: Optional[str] = "object"
    properties: Dict[str, "SchemaNode"] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)

    def to_schema(self) -> Dict[str, Any]:
        schema = self._common_schema()
        schema["properties"] = {
            name: node.to_schema() for name, node in self.properties.items()
        }
        if self.required:
            schema["required"] = list(self.required)
        return schema


class ArrayNode(SchemaNodeBase):
    """An array schema with an optional item schema."""

    kind: Literal["array"] = "array"
    type: Optional[str] = "array"
    items: Optional["SchemaNode"] = None

    def to_schema(self) -> Dict[str, Any]:
        schema = self._common_schema()
        if self.items is not None:
            schema["items"] = self.items.to_schema()
        return schema


class Discriminator(BaseModel):
    """Names the property whose value selects a oneOf branch."""

    property_name: str
    mapping: Optional[Dict[str, str]] = None

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"propertyName": self.property_name}
        if self.mapping is not None:
            schema["mapping"] = dict(self.mapping)
        return schema


class CompositionNode(SchemaNodeBase):
    """A oneOf, anyOf or allOf composition of member schemas."""

    kind: Literal["composition"] = "composition"
    operator: Literal["oneOf", "anyOf", "allOf"]
    members: List["SchemaNode"] = Field(default_factory=list)
    discriminator: Optional[Discriminator] = None

    def to_schema(self) -> Dict[str, Any]:
        schema = self._common_schema()
        schema[self.operator] = [member.to_schema() for member in self.members]
        if self.discriminator is not None:
            schema["discriminator"] = self.discriminator.to_schema()
        return schema


class ReferenceNode(SchemaNodeBase):
    """A bare reference left where a circular reference re-enters.

    Only the target id is rendered; it points into the output document's
    ``schemas`` registry.
    """

    kind: Literal["reference"] = "reference"
    reference: str

    def to_schema(self) -> Dict[str, Any]:
        return {"$ref": f"{SCHEMA_POINTER_PREFIX}{escape_token(self.reference)}"}


class ErrorNode(SchemaNodeBase):
    """Stands in for a schema whose reference could not be resolved."""

    kind: Literal["error"] = "error"
    type: Optional[str] = "object"
    reference: str

    @classmethod
    def for_reference(cls, ref: str) -> "ErrorNode":
        return cls(reference=ref, description=f"Unresolvable reference: {ref}")

    def to_schema(self) -> Dict[str, Any]:
        schema = self._common_schema()
        schema["x-unresolved-reference"] = self.reference
        return schema


SchemaNode = Annotated[
    Union[PrimitiveNode, ObjectNode, ArrayNode, CompositionNode, ReferenceNode, ErrorNode],
    Field(discriminator="kind"),
]

ObjectNode.model_rebuild()
ArrayNode.model_rebuild()
CompositionNode.model_rebuild()


class ToolDescriptor(BaseModel):
    """Represents a single callable tool in the MCP format."""

    name: str
    description: str = ""
    parameters: ObjectNode = Field(default_factory=ObjectNode)

    @property
    def required(self) -> List[str]:
        return self.parameters.required

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.to_schema(),
        }


class DocumentMetadata(BaseModel):
    """Title, description and version of the source API."""

    title: str = "API"
    description: str = ""
    version: str = "1.0.0"


class OutputDocument(BaseModel):
    """The assembled MCP document."""

    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    tools: List[ToolDescriptor] = Field(default_factory=list)
    schemas: Dict[str, SchemaNode] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": MCP_SCHEMA,
            "version": MCP_VERSION,
            "metadata": self.metadata.model_dump(),
            "tools": [tool.to_dict() for tool in self.tools],
            "schemas": {name: node.to_schema() for name, node in self.schemas.items()},
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


class SourceMapEntry(BaseModel):
    """Links an element of the MCP output to its location in the source document."""

    model_config = ConfigDict(populate_by_name=True)

    source_path: str = Field(alias="sourcePath")
    source_line: Optional[int] = Field(default=None, alias="sourceLine")


class ConversionDiagnostics(BaseModel):
    """Diagnostic trace of a conversion run."""

    warnings: List[str] = Field(default_factory=list)
    processing_steps: List[str] = Field(default_factory=list)
    performance_metrics: Dict[str, float] = Field(default_factory=dict)


class ConversionResult(BaseModel):
    """Outcome of a conversion run."""

    success: bool
    document: Optional[OutputDocument] = None
    mcp_json: Optional[str] = None
    error_message: Optional[str] = None
    content_hash: Optional[str] = None
    source_map: Optional[Dict[str, SourceMapEntry]] = None
    diagnostics: Optional[ConversionDiagnostics] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
