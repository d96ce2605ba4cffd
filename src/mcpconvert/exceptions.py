class MCPConvertError(Exception):
    """Base exception for OpenAPI to MCP conversion errors."""
    pass

class DocumentError(MCPConvertError):
    """Raised when the input document cannot be loaded or is not an API description."""
    pass

class DereferenceError(MCPConvertError):
    """Raised when a local reference to a path item, parameter or request body cannot be resolved."""
    pass

class UnresolvableReferenceError(MCPConvertError):
    """Raised when a schema reference points at a name missing from the schema registry."""

    def __init__(self, ref: str):
        super().__init__(f"Could not resolve reference: {ref}")
        self.ref = ref

class ConversionError(MCPConvertError):
    """Raised when a conversion run fails and its output was requested."""
    pass
