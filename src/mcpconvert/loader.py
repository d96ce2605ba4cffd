"""
Loading of OpenAPI / Swagger documents from files, text or decoded mappings.
"""

import json
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Union

import yaml

from .exceptions import DocumentError

SUPPORTED_VERSIONS = ("2.0", "3.0", "3.1")


class LoadedDocument(NamedTuple):
    """A decoded document plus the text it was decoded from, when known."""

    data: Dict[str, Any]
    text: Optional[str]


def detect_version(document: Dict[str, Any]) -> str:
    """Return the declared OpenAPI/Swagger version of a document.

    Raises:
        DocumentError: If no supported version is declared
    """
    version = document.get("openapi", document.get("swagger"))
    if version is None:
        raise DocumentError("Missing required field: openapi (or swagger)")
    version = str(version)
    if not version.startswith(SUPPORTED_VERSIONS):
        raise DocumentError(f"Unsupported OpenAPI version: {version}")
    return version


def parse_text(content: str) -> Any:
    """Parse JSON, falling back to YAML.

    Raises:
        DocumentError: If the text is neither
    """
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise DocumentError(f"Failed to parse specification: {e}")


def load_document(
    source: Union[str, bytes, Path, Dict[str, Any]],
    max_bytes: Optional[int] = None,
) -> LoadedDocument:
    """Load and validate an OpenAPI document.

    Args:
        source: A decoded mapping, JSON/YAML text or bytes, or a Path to a file
        max_bytes: Reject text larger than this many bytes

    Returns:
        The loaded document

    Raises:
        DocumentError: If the document cannot be read, parsed or validated
    """
    if isinstance(source, dict):
        detect_version(source)
        return LoadedDocument(source, None)

    if isinstance(source, Path):
        try:
            raw = source.read_bytes()
        except OSError as e:
            raise DocumentError(f"Failed to read specification file: {e}")
    elif isinstance(source, bytes):
        raw = source
    else:
        raw = source.encode("utf-8")

    if max_bytes is not None and len(raw) > max_bytes:
        raise DocumentError(f"Document is {len(raw)} bytes, larger than the {max_bytes} byte limit")

    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise DocumentError(f"Specification is not UTF-8 text: {e}")

    data = parse_text(text)
    if not isinstance(data, dict):
        raise DocumentError("Specification must be a mapping")
    detect_version(data)
    return LoadedDocument(data, text)
