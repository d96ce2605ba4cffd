"""
Mapping of OpenAPI primitive type names onto MCP parameter types.
"""

from typing import Any, Optional

SUPPORTED_TYPES = frozenset({"integer", "number", "boolean", "array", "object", "string"})
DEFAULT_TYPE = "string"


def map_type(source_type: Optional[Any]) -> str:
    """Map an OpenAPI type name to the type emitted in MCP output.

    Known types map to themselves. Anything else, including a missing type,
    becomes "string" so every emitted property carries a concrete type.

    Args:
        source_type: The type name found in the source schema

    Returns:
        The MCP type name
    """
    if isinstance(source_type, str) and source_type in SUPPORTED_TYPES:
        return source_type
    return DEFAULT_TYPE
