"""
Core functionality for converting OpenAPI specifications to MCP format.
"""

import hashlib
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog
import yaml

from .assembler import DocumentAssembler
from .config import ConverterSettings
from .context import ConversionContext
from .dereferencer import LocalDereferencer
from .exceptions import ConversionError
from .loader import detect_version, load_document
from .models import ConversionDiagnostics, ConversionResult
from .normalizer import normalize_document
from .provenance import SourceLocator, SourceMapBuilder
from .resolver import SchemaResolver
from .tools import OperationMapper

logger = structlog.get_logger(__name__)


def content_hash(payload: str) -> str:
    """SHA-256 hex digest of serialized MCP output."""
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class OpenAPIToMCPConverter:
    """Converts OpenAPI specifications to MCP format."""

    def __init__(
        self,
        openapi_spec: Dict[str, Any],
        source_text: Optional[str] = None,
        settings: Optional[ConverterSettings] = None,
    ):
        """Initialize the converter with an OpenAPI specification.

        Args:
            openapi_spec: Dictionary containing the OpenAPI specification
            source_text: The text the specification was decoded from, used for source line numbers
            settings: Converter settings. Defaults to settings read from the environment.
        """
        self.spec = openapi_spec
        self.source_text = source_text
        self.settings = settings or ConverterSettings()

    @classmethod
    def from_file(cls, path: Union[str, Path], settings: Optional[ConverterSettings] = None) -> "OpenAPIToMCPConverter":
        """Create a converter instance from a JSON or YAML file.

        Args:
            path: Path to the OpenAPI file
            settings: Converter settings

        Returns:
            An instance of OpenAPIToMCPConverter

        Raises:
            DocumentError: If the file cannot be loaded
        """
        settings = settings or ConverterSettings()
        loaded = load_document(Path(path), max_bytes=settings.max_document_bytes)
        return cls(loaded.data, loaded.text, settings)

    @classmethod
    def from_text(cls, text: str, settings: Optional[ConverterSettings] = None) -> "OpenAPIToMCPConverter":
        """Create a converter instance from JSON or YAML text.

        Raises:
            DocumentError: If the text cannot be loaded
        """
        settings = settings or ConverterSettings()
        loaded = load_document(text, max_bytes=settings.max_document_bytes)
        return cls(loaded.data, loaded.text, settings)

    def convert(
        self,
        include_source_map: Optional[bool] = None,
        diagnostic_mode: Optional[bool] = None,
    ) -> ConversionResult:
        """Convert the OpenAPI spec to MCP format.

        Unexpected failures are reported through the result rather than raised.

        Args:
            include_source_map: Produce a source map. Defaults to the settings value.
            diagnostic_mode: Collect diagnostics. Defaults to the settings value.

        Returns:
            The conversion result
        """
        if include_source_map is None:
            include_source_map = self.settings.include_source_map
        if diagnostic_mode is None:
            diagnostic_mode = self.settings.diagnostic_mode

        started = time.perf_counter()
        diagnostics = ConversionDiagnostics()
        log = logger.bind(title=(self.spec.get("info") or {}).get("title") if isinstance(self.spec, dict) else None)

        def elapsed_ms(since: float) -> float:
            return (time.perf_counter() - since) * 1000.0

        try:
            version = detect_version(self.spec)
            diagnostics.processing_steps.append(f"Starting conversion of OpenAPI {version} document")

            normalize_started = time.perf_counter()
            normalized, warnings = normalize_document(self.spec)
            diagnostics.warnings.extend(warnings)
            diagnostics.performance_metrics["NormalizeTime"] = elapsed_ms(normalize_started)
            diagnostics.processing_steps.append(f"Document normalized ({len(warnings)} warnings)")

            conversion_started = time.perf_counter()
            context = ConversionContext.from_document(normalized)
            resolver = SchemaResolver(context)
            source_map = SourceMapBuilder(SourceLocator(self.source_text)) if include_source_map else None

            mapper = OperationMapper(normalized, resolver, LocalDereferencer(normalized), source_map)
            tools = mapper.map_operations()
            diagnostics.processing_steps.append(f"Converted {len(tools)} operations to tools")

            assembler = DocumentAssembler(normalized, resolver, source_map)
            document = assembler.assemble(tools)
            diagnostics.processing_steps.append(f"Converted {len(document.schemas)} schemas")
            diagnostics.performance_metrics["ConversionTime"] = elapsed_ms(conversion_started)

            diagnostics.warnings.extend(resolver.warnings)
            diagnostics.warnings.extend(mapper.warnings)
            diagnostics.warnings.extend(assembler.warnings)

            mcp_json = document.to_json(indent=self.settings.json_indent)
            diagnostics.performance_metrics["TotalTime"] = elapsed_ms(started)
            diagnostics.processing_steps.append("Conversion completed successfully")
            log.info("Conversion completed.", tools=len(tools), warnings=len(diagnostics.warnings))

            return ConversionResult(
                success=True,
                document=document,
                mcp_json=mcp_json,
                content_hash=content_hash(mcp_json),
                source_map=source_map.entries if source_map is not None else None,
                diagnostics=diagnostics if diagnostic_mode else None,
            )
        except Exception as e:
            log.exception("Error converting OpenAPI to MCP")
            diagnostics.processing_steps.append(f"Unexpected error: {e}")
            diagnostics.warnings.append(f"Exception: {type(e).__name__}")
            diagnostics.performance_metrics["TotalTime"] = elapsed_ms(started)
            return ConversionResult(
                success=False,
                error_message=f"Conversion failed: {e}",
                diagnostics=diagnostics if diagnostic_mode else None,
            )

    def save_mcp(self, output_path: Union[str, Path]) -> ConversionResult:
        """Convert and save the MCP document.

        Written as YAML when the path ends in .yaml or .yml, JSON otherwise.

        Args:
            output_path: Path where to save the MCP document

        Returns:
            The conversion result

        Raises:
            ConversionError: If the conversion failed
        """
        result = self.convert()
        if not result.success or result.document is None:
            raise ConversionError(result.error_message or "Conversion failed")

        write_result(result, output_path)
        return result


def write_result(result: ConversionResult, output_path: Union[str, Path]) -> None:
    """Write a successful result as JSON, or as YAML for .yaml/.yml paths."""
    output_path = Path(output_path)
    with open(output_path, "w", encoding="utf-8") as f:
        if output_path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(result.document.to_dict(), f, sort_keys=False, allow_unicode=True)
        else:
            f.write(result.mcp_json)

