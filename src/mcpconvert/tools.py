"""
Mapping of OpenAPI operations onto MCP tool descriptors.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import structlog

from .dereferencer import LocalDereferencer, join_pointer
from .exceptions import DereferenceError, UnresolvableReferenceError
from .models import ErrorNode, ReferenceNode, SchemaNode, ToolDescriptor
from .provenance import SourceMapBuilder
from .resolver import SchemaResolver

logger = structlog.get_logger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
BODY_KEY = "body"
BODY_DESCRIPTION = "Request body"

# Keys describing a Swagger 2 non-body parameter's value inline
SWAGGER2_SCHEMA_KEYS = (
    "type",
    "format",
    "items",
    "enum",
    "default",
    "nullable",
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
)

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


def _capitalize(segment: str) -> str:
    return segment[:1].upper() + segment[1:]


def tool_name(operation: Dict[str, Any], path: str, method: str) -> str:
    """Generate a tool name for an operation.

    The operationId is used when present. Otherwise the name is the method
    followed by each path segment capitalized, with ``{id}`` becoming ``ById``.

    Args:
        operation: OpenAPI operation object
        path: API endpoint path
        method: HTTP method, lowercase

    Returns:
        The tool name
    """
    operation_id = operation.get("operationId")
    if isinstance(operation_id, str) and operation_id:
        return operation_id

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return f"{method}Root"

    parts = []
    for segment in segments:
        if segment.startswith("{") and segment.endswith("}"):
            segment = "By" + _capitalize(segment[1:-1])
        parts.append(_capitalize(segment))
    return _NON_ALPHANUMERIC.sub("", method + "".join(parts))


def _is_json_media_type(media_type: Any) -> bool:
    return isinstance(media_type, str) and "json" in media_type.lower()


class OperationMapper:
    """Builds one tool descriptor per (path, method) pair of a document."""

    def __init__(
        self,
        document: Dict[str, Any],
        resolver: SchemaResolver,
        dereferencer: Optional[LocalDereferencer] = None,
        source_map: Optional[SourceMapBuilder] = None,
    ):
        """Initialize the mapper.

        Args:
            document: The normalized OpenAPI document
            resolver: Schema resolver bound to the document's registry
            dereferencer: Resolver for parameter, request body and path item references
            source_map: Optional collector for provenance entries
        """
        self.document = document
        self.resolver = resolver
        self.dereferencer = dereferencer or LocalDereferencer(document)
        self.source_map = source_map
        self.warnings: List[str] = []
        self.is_swagger2 = "swagger" in document and "openapi" not in document

    def _warn(self, message: str, **context: Any) -> None:
        self.warnings.append(message)
        logger.warning(message, **context)

    def _record(self, output_path: str, source_pointer: str) -> None:
        if self.source_map is not None:
            self.source_map.record(output_path, source_pointer)

    def map_operations(self) -> List[ToolDescriptor]:
        """Convert every operation in the document, in document order.

        An operation that fails unexpectedly is skipped with a warning; the
        remaining operations are still converted.

        Returns:
            List of tool descriptors
        """
        tools: List[ToolDescriptor] = []
        paths = self.document.get("paths")
        if not isinstance(paths, dict):
            return tools

        for path, path_item in paths.items():
            try:
                path_item = self.dereferencer.resolve(path_item)
            except DereferenceError as e:
                self._warn(f"Skipped path {path}: {e}", path=path)
                continue
            if not isinstance(path_item, dict):
                continue

            for method, operation in path_item.items():
                if not isinstance(method, str) or method.lower() not in HTTP_METHODS:
                    continue
                if not isinstance(operation, dict):
                    continue
                try:
                    tool = self.map_operation(str(path), method.lower(), path_item, operation, len(tools))
                except Exception as e:
                    logger.exception("Operation conversion failed.", path=path, method=method)
                    self._warn(f"Skipped {method.upper()} {path}: {type(e).__name__}: {e}")
                    continue
                tools.append(tool)

        return tools

    def map_operation(
        self,
        path: str,
        method: str,
        path_item: Dict[str, Any],
        operation: Dict[str, Any],
        index: int = 0,
    ) -> ToolDescriptor:
        """Convert one operation into a tool descriptor.

        Args:
            path: API endpoint path
            method: HTTP method, lowercase
            path_item: The path item holding the operation
            operation: OpenAPI operation object
            index: Position of the tool in the output, for provenance

        Returns:
            The tool descriptor
        """
        operation_pointer = join_pointer("paths", path, method)
        tool_path = f"tools[{index}]"
        records = [(tool_path, operation_pointer)]

        description = operation.get("description") or operation.get("summary") or f"{method.upper()} {path}"
        tool = ToolDescriptor(name=tool_name(operation, path, method), description=description)
        parameters = self._collect_parameters(path, method, path_item, operation)

        for location in ("path", "query"):
            for (name, param_in), (param, pointer) in parameters.items():
                if param_in != location:
                    continue
                tool.parameters.properties[name] = self._convert_parameter(param)
                if param.get("required", False):
                    tool.parameters.required.append(name)
                records.append((f"{tool_path}.parameters.properties.{name}", pointer))

        body = self._convert_body(operation, operation_pointer, parameters)
        if body is not None:
            body_node, required, pointer = body
            if BODY_KEY in tool.parameters.properties:
                self._warn(f"Request body of {method.upper()} {path} replaces a parameter named {BODY_KEY!r}")
                tool.parameters.required = [name for name in tool.parameters.required if name != BODY_KEY]
            tool.parameters.properties[BODY_KEY] = body_node
            if required:
                tool.parameters.required.append(BODY_KEY)
            records.append((f"{tool_path}.parameters.properties.{BODY_KEY}", pointer))

        # only a fully mapped operation leaves provenance behind
        for output_path, source_pointer in records:
            self._record(output_path, source_pointer)
        return tool

    def _collect_parameters(
        self,
        path: str,
        method: str,
        path_item: Dict[str, Any],
        operation: Dict[str, Any],
    ) -> Dict[Tuple[str, str], Tuple[Dict[str, Any], str]]:
        """Merge path-level and operation-level parameters, keyed by (name, in).

        Operation-level parameters override path-level ones.
        """
        collected: Dict[Tuple[str, str], Tuple[Dict[str, Any], str]] = {}
        sources = (
            (path_item.get("parameters"), join_pointer("paths", path, "parameters")),
            (operation.get("parameters"), join_pointer("paths", path, method, "parameters")),
        )
        for params, base_pointer in sources:
            if not isinstance(params, list):
                continue
            for position, raw in enumerate(params):
                pointer = f"{base_pointer}/{position}"
                try:
                    param = self.dereferencer.resolve(raw)
                except DereferenceError as e:
                    self._warn(f"Skipped parameter at {pointer}: {e}", pointer=pointer)
                    continue
                if not isinstance(param, dict) or not isinstance(param.get("name"), str):
                    self._warn(f"Skipped malformed parameter at {pointer}", pointer=pointer)
                    continue
                collected[(param["name"], str(param.get("in")))] = (param, pointer)
        return collected

    def _parameter_schema(self, param: Dict[str, Any]) -> Any:
        if "schema" in param:
            return param["schema"]
        content = param.get("content")
        if isinstance(content, dict):
            for media_type, media in content.items():
                if _is_json_media_type(media_type) and isinstance(media, dict):
                    return media.get("schema")
            for media in content.values():
                if isinstance(media, dict) and "schema" in media:
                    return media["schema"]
        return {key: param[key] for key in SWAGGER2_SCHEMA_KEYS if key in param}

    def _convert_schema(self, schema: Any, where: str) -> SchemaNode:
        try:
            return self.resolver.convert(schema)
        except UnresolvableReferenceError as e:
            self._warn(f"{where}: {e}", ref=e.ref)
            return ErrorNode.for_reference(e.ref)

    def _convert_parameter(self, param: Dict[str, Any]) -> SchemaNode:
        node = self._convert_schema(self._parameter_schema(param), f"Parameter {param['name']!r}")
        if isinstance(node, (ErrorNode, ReferenceNode)):
            return node
        if isinstance(param.get("description"), str) and param["description"]:
            node.description = param["description"]
        elif node.description is None:
            node.description = param["name"]
        if param.get("deprecated") is True:
            node.deprecated = True
        return node

    def _convert_body(
        self,
        operation: Dict[str, Any],
        operation_pointer: str,
        parameters: Dict[Tuple[str, str], Tuple[Dict[str, Any], str]],
    ) -> Optional[Tuple[SchemaNode, bool, str]]:
        """Convert the JSON request body of an operation.

        Returns:
            Tuple of (body node, whether the body is required, source pointer),
            or None when the operation has no JSON body
        """
        if self.is_swagger2:
            return self._convert_swagger2_body(operation, parameters)

        raw_body = operation.get("requestBody")
        if raw_body is None:
            return None
        pointer = f"{operation_pointer}/requestBody"
        try:
            request_body = self.dereferencer.resolve(raw_body)
        except DereferenceError as e:
            self._warn(f"Skipped request body at {pointer}: {e}", pointer=pointer)
            return None
        content = request_body.get("content") if isinstance(request_body, dict) else None
        if not isinstance(content, dict):
            return None

        for media_type, media in content.items():
            if _is_json_media_type(media_type) and isinstance(media, dict) and "schema" in media:
                node = self._convert_schema(media["schema"], "Request body")
                self._describe_body(node, request_body.get("description"))
                return node, bool(request_body.get("required", False)), pointer
        return None

    def _convert_swagger2_body(
        self,
        operation: Dict[str, Any],
        parameters: Dict[Tuple[str, str], Tuple[Dict[str, Any], str]],
    ) -> Optional[Tuple[SchemaNode, bool, str]]:
        consumes = operation.get("consumes", self.document.get("consumes"))
        if isinstance(consumes, list) and consumes and not any(_is_json_media_type(m) for m in consumes):
            return None

        for (_, param_in), (param, pointer) in parameters.items():
            if param_in == "body":
                node = self._convert_schema(param.get("schema"), "Request body")
                self._describe_body(node, param.get("description"))
                return node, bool(param.get("required", False)), pointer
        return None

    @staticmethod
    def _describe_body(node: SchemaNode, description: Any) -> None:
        if isinstance(node, (ErrorNode, ReferenceNode)):
            return
        if isinstance(description, str) and description:
            node.description = description
        elif node.description is None:
            node.description = BODY_DESCRIPTION
