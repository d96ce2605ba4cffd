"""OpenAPI to MCP converter package."""

from .converter import OpenAPIToMCPConverter
from .exceptions import (
    ConversionError,
    DereferenceError,
    DocumentError,
    MCPConvertError,
    UnresolvableReferenceError,
)
from .models import ConversionResult, OutputDocument, ToolDescriptor

__version__ = "0.1.0"
__all__ = [
    "OpenAPIToMCPConverter",
    "ConversionResult",
    "OutputDocument",
    "ToolDescriptor",
    "MCPConvertError",
    "DocumentError",
    "DereferenceError",
    "UnresolvableReferenceError",
    "ConversionError",
]
