"""
Local dereferencer for OpenAPI documents.

Resolves ``$ref`` pointers for the non-schema objects an operation is built from:
path items, parameters and request bodies (e.g. "#/components/parameters/limit").
Schema references are handled by the resolver instead. References into other
files or URLs are not followed.
"""

from typing import Any, Dict, Set

from .exceptions import DereferenceError

# Reference Object siblings that override the referenced content
OVERRIDING_SIBLINGS = ("summary", "description")


def escape_token(token: str) -> str:
    """Escape a single JSON pointer reference token."""
    return token.replace("~", "~0").replace("/", "~1")


def unescape_token(token: str) -> str:
    """Unescape a single JSON pointer reference token."""
    return token.replace("~1", "/").replace("~0", "~")


def join_pointer(*tokens: Any) -> str:
    """Build a JSON pointer from raw (unescaped) tokens."""
    return "".join(f"/{escape_token(str(token))}" for token in tokens)


def split_pointer(pointer: str) -> tuple:
    """Split a JSON pointer into unescaped tokens.

    Raises:
        DereferenceError: If the pointer is not absolute
    """
    if pointer == "":
        return ()
    if not pointer.startswith("/"):
        raise DereferenceError(f"Invalid JSON pointer: {pointer}")
    return tuple(unescape_token(part) for part in pointer[1:].split("/"))


class LocalDereferencer:
    """Resolves local references to path items, parameters and request bodies."""

    def __init__(self, document: Dict[str, Any]):
        """Initialize the dereferencer.

        Args:
            document: The (normalized) OpenAPI document
        """
        self.document = document
        self._ref_stack: Set[str] = set()

    def resolve_pointer(self, pointer: str) -> Any:
        """Resolve a JSON pointer within the document.

        Args:
            pointer: JSON pointer (e.g. "/components/parameters/limit")

        Returns:
            The referenced value

        Raises:
            DereferenceError: If the pointer cannot be resolved
        """
        current: Any = self.document
        for part in split_pointer(pointer):
            try:
                if isinstance(current, list):
                    current = current[int(part)]
                else:
                    current = current[part]
            except (KeyError, TypeError, IndexError, ValueError):
                raise DereferenceError(f"Could not resolve pointer {pointer}")
        return current

    def resolve(self, obj: Any) -> Any:
        """Return ``obj`` with its ``$ref`` chain followed.

        Summary and description siblings of the reference override the
        referenced content; other siblings are dropped.

        Args:
            obj: A path item, parameter or request body, possibly a reference

        Returns:
            The dereferenced object

        Raises:
            DereferenceError: If the reference is external, circular or dangling
        """
        if not isinstance(obj, dict) or "$ref" not in obj:
            return obj

        ref = obj["$ref"]
        if not isinstance(ref, str) or not ref.startswith("#"):
            raise DereferenceError(f"Only local references are supported: {ref}")
        if ref in self._ref_stack:
            raise DereferenceError(f"Circular reference: {ref}")

        self._ref_stack.add(ref)
        try:
            target = self.resolve(self.resolve_pointer(ref[1:]))
        finally:
            self._ref_stack.remove(ref)

        if not isinstance(target, dict):
            raise DereferenceError(f"Reference {ref} does not point at an object")

        result = dict(target)
        for key in OVERRIDING_SIBLINGS:
            if key in obj:
                result[key] = obj[key]
        return result
