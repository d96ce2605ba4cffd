"""
Provenance for MCP output: maps output locations back to the source document.
"""

from typing import Any, Dict, Mapping, Optional

import structlog
import yaml

from .dereferencer import split_pointer
from .exceptions import DereferenceError
from .models import SourceMapEntry

logger = structlog.get_logger(__name__)


class SourceLocator:
    """Looks up the line where a JSON pointer's target starts in the source text.

    JSON and YAML text are both composed with PyYAML; text it cannot compose
    yields no line numbers.
    """

    def __init__(self, text: Optional[str] = None):
        self._lines: Dict[tuple, int] = {}
        if not text:
            return
        try:
            root = yaml.compose(text, Loader=yaml.SafeLoader)
        except yaml.YAMLError as e:
            logger.debug("Source text could not be composed; no line numbers.", error=str(e))
            return
        if root is not None:
            self._index(root, (), set())

    def _index(self, node: yaml.Node, path: tuple, active: set) -> None:
        # aliases may repeat a node; a node inside itself would recurse forever
        if id(node) in active:
            return
        self._lines.setdefault(path, node.start_mark.line + 1)
        active.add(id(node))
        try:
            if isinstance(node, yaml.MappingNode):
                for key_node, value_node in node.value:
                    if isinstance(key_node, yaml.ScalarNode):
                        self._index(value_node, path + (key_node.value,), active)
            elif isinstance(node, yaml.SequenceNode):
                for index, item in enumerate(node.value):
                    self._index(item, path + (str(index),), active)
        finally:
            active.discard(id(node))

    def line_for(self, pointer: str) -> Optional[int]:
        """Return the 1-based line of ``pointer``'s target, if known."""
        try:
            return self._lines.get(split_pointer(pointer))
        except DereferenceError:
            return None


def source_map_to_dict(entries: Mapping[str, SourceMapEntry]) -> Dict[str, Any]:
    """Serialize source map entries with their camelCase field names."""
    return {path: entry.model_dump(by_alias=True) for path, entry in entries.items()}


class SourceMapBuilder:
    """Collects source map entries during a conversion run."""

    def __init__(self, locator: Optional[SourceLocator] = None):
        self.locator = locator or SourceLocator()
        self.entries: Dict[str, SourceMapEntry] = {}

    def record(self, output_path: str, source_pointer: str) -> None:
        self.entries[output_path] = SourceMapEntry(
            source_path=source_pointer,
            source_line=self.locator.line_for(source_pointer),
        )

    def to_dict(self) -> Dict[str, Any]:
        return source_map_to_dict(self.entries)
