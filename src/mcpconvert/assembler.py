"""
Assembly of the MCP output document.
"""

from typing import Any, Dict, List, Optional

import structlog

from .context import schema_ref
from .exceptions import UnresolvableReferenceError
from .models import DocumentMetadata, ErrorNode, OutputDocument, SchemaNode, ToolDescriptor
from .provenance import SourceMapBuilder
from .resolver import SchemaResolver

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = "API"
DEFAULT_DESCRIPTION = ""
DEFAULT_VERSION = "1.0.0"


class DocumentAssembler:
    """Combines metadata, tools and the converted schema registry."""

    def __init__(
        self,
        document: Dict[str, Any],
        resolver: SchemaResolver,
        source_map: Optional[SourceMapBuilder] = None,
    ):
        self.document = document
        self.resolver = resolver
        self.source_map = source_map
        self.warnings: List[str] = []

    def metadata(self) -> DocumentMetadata:
        info = self.document.get("info")
        if not isinstance(info, dict):
            info = {}

        def text(key: str, default: str) -> str:
            value = info.get(key)
            return str(value) if value is not None else default

        return DocumentMetadata(
            title=text("title", DEFAULT_TITLE),
            description=text("description", DEFAULT_DESCRIPTION),
            version=text("version", DEFAULT_VERSION),
        )

    def schemas(self) -> Dict[str, SchemaNode]:
        converted: Dict[str, SchemaNode] = {}
        for name in self.resolver.context.schemas:
            try:
                converted[name] = self.resolver.convert_named(name)
            except UnresolvableReferenceError as e:
                message = f"Schema {name!r}: {e}"
                self.warnings.append(message)
                logger.warning(message, ref=e.ref)
                converted[name] = ErrorNode.for_reference(e.ref)
            if self.source_map is not None:
                pointer = schema_ref(name, self.document)[1:]
                self.source_map.record(f"schemas.{name}", pointer)
        return converted

    def assemble(self, tools: List[ToolDescriptor]) -> OutputDocument:
        """Build the output document.

        Args:
            tools: Tool descriptors in document order

        Returns:
            The MCP output document
        """
        return OutputDocument(
            metadata=self.metadata(),
            tools=list(tools),
            schemas=self.schemas(),
        )
