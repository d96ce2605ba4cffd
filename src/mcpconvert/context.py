"""
Document-scoped state for schema conversion: the schema registry and the
reference guard used to break cycles.
"""

from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Set

from .dereferencer import escape_token, unescape_token
from .exceptions import UnresolvableReferenceError

SCHEMA_REF_PREFIXES = ("#/components/schemas/", "#/definitions/")


def schema_id_from_ref(ref: Any) -> Optional[str]:
    """Extract the registry name from a local schema reference.

    Returns None for references outside the schema registry, including external
    files and pointers into a schema's interior.
    """
    if not isinstance(ref, str):
        return None
    for prefix in SCHEMA_REF_PREFIXES:
        if ref.startswith(prefix):
            name = ref[len(prefix):]
            if not name or "/" in name:
                return None
            return unescape_token(name)
    return None


def schema_ref(schema_id: str, document: Optional[Mapping[str, Any]] = None) -> str:
    """Build the local reference for a registry name in the document's dialect."""
    escaped = escape_token(schema_id)
    if document is not None and "swagger" in document and "openapi" not in document:
        return f"#/definitions/{escaped}"
    return f"#/components/schemas/{escaped}"


def schema_registry(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Collect named schemas from ``components.schemas`` and Swagger 2 ``definitions``."""
    registry: Dict[str, Any] = {}
    definitions = document.get("definitions")
    if isinstance(definitions, dict):
        registry.update(definitions)
    components = document.get("components")
    if isinstance(components, dict) and isinstance(components.get("schemas"), dict):
        registry.update(components["schemas"])
    return registry


class ReferenceGuard:
    """Reference ids being resolved on the active call path."""

    def __init__(self):
        self._active: Set[str] = set()

    def __contains__(self, ref_id: object) -> bool:
        return ref_id in self._active

    def __len__(self) -> int:
        return len(self._active)

    @contextmanager
    def acquire(self, ref_id: str) -> Iterator[None]:
        """Hold ``ref_id`` for the duration of the block.

        Raises:
            ValueError: If ``ref_id`` is already held
        """
        if ref_id in self._active:
            raise ValueError(f"Reference already being resolved: {ref_id}")
        self._active.add(ref_id)
        try:
            yield
        finally:
            self._active.discard(ref_id)


class ConversionContext:
    """Read-only schema registry plus the cycle guard for one conversion run."""

    def __init__(self, schemas: Mapping[str, Any], guard: Optional[ReferenceGuard] = None):
        self.schemas: Mapping[str, Any] = MappingProxyType(dict(schemas))
        self.guard = guard if guard is not None else ReferenceGuard()

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ConversionContext":
        return cls(schema_registry(document))

    def lookup(self, schema_id: str, ref: Optional[str] = None) -> Any:
        """Return the raw schema registered under ``schema_id``.

        Raises:
            UnresolvableReferenceError: If no schema has that name
        """
        try:
            return self.schemas[schema_id]
        except KeyError:
            raise UnresolvableReferenceError(ref or schema_id)
