"""
Command-line interface for the OpenAPI to MCP converter.
"""

import json
from pathlib import Path
from typing import Optional

import typer
import yaml

from .config import ConverterSettings
from .converter import OpenAPIToMCPConverter, write_result
from .exceptions import DocumentError
from .loader import load_document
from .log import configure_logging
from .normalizer import normalize_document
from .provenance import source_map_to_dict

app = typer.Typer(help="Convert OpenAPI specifications to MCP format")


def _settings() -> ConverterSettings:
    settings = ConverterSettings()
    configure_logging(settings.logging)
    return settings


def _save_yaml(content: dict, path: Path) -> None:
    """Save content to a YAML file.

    Args:
        content: The content to save
        path: Path where to save the file

    Raises:
        typer.Exit: If the file cannot be saved
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(content, f, sort_keys=False, allow_unicode=True)
    except OSError as e:
        typer.echo(f"Error saving to {path}: {str(e)}", err=True)
        raise typer.Exit(1)


@app.command()
def convert(
    input_file: Path = typer.Argument(..., help="Path to the input OpenAPI JSON or YAML file"),
    output_file: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Path to save the MCP document. If not provided, will use input filename with .mcp.json extension",
    ),
    source_map: Optional[Path] = typer.Option(
        None,
        "--source-map",
        help="Also write a source map mapping output locations to source lines",
    ),
    diagnostics: bool = typer.Option(
        False,
        "--diagnostics",
        help="Print processing steps, warnings and timings",
    ),
) -> None:
    """Convert an OpenAPI specification to MCP format."""
    settings = _settings()
    if output_file is None:
        output_file = input_file.parent / f"{input_file.stem}.mcp.json"

    try:
        converter = OpenAPIToMCPConverter.from_file(input_file, settings)
    except DocumentError as e:
        typer.echo(f"Error loading {input_file}: {str(e)}", err=True)
        raise typer.Exit(1)

    result = converter.convert(
        include_source_map=source_map is not None,
        diagnostic_mode=diagnostics or settings.diagnostic_mode,
    )

    if result.diagnostics is not None:
        for step in result.diagnostics.processing_steps:
            typer.echo(f"- {step}", err=True)
        for warning in result.diagnostics.warnings:
            typer.echo(f"Warning: {warning}", err=True)
        for name, value in result.diagnostics.performance_metrics.items():
            typer.echo(f"{name}: {value:.2f} ms", err=True)

    if not result.success:
        typer.echo(f"Error: {result.error_message}", err=True)
        raise typer.Exit(1)

    try:
        write_result(result, output_file)
        if source_map is not None:
            entries = source_map_to_dict(result.source_map or {})
            source_map.write_text(json.dumps(entries, indent=2), encoding="utf-8")
    except OSError as e:
        typer.echo(f"Error saving to {output_file}: {str(e)}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Successfully converted {input_file} to {output_file}")


@app.command()
def normalize(
    input_file: Path = typer.Argument(..., help="Path to the input OpenAPI spec"),
    output_file: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Path to save the normalized spec. If not provided, will use input filename with .normalized.yaml suffix",
    ),
) -> None:
    """Rewrite an OpenAPI specification into the shape the converter consumes."""
    settings = _settings()
    if not input_file.exists():
        typer.echo(f"Input file not found: {input_file}", err=True)
        raise typer.Exit(1)

    if output_file is None:
        output_file = input_file.parent / f"{input_file.stem}.normalized.yaml"

    try:
        loaded = load_document(input_file, max_bytes=settings.max_document_bytes)
    except DocumentError as e:
        typer.echo(f"Error loading {input_file}: {str(e)}", err=True)
        raise typer.Exit(1)

    normalized, warnings = normalize_document(loaded.data)
    for warning in warnings:
        typer.echo(f"Warning: {warning}", err=True)

    _save_yaml(normalized, output_file)
    typer.echo(f"Successfully normalized {input_file} to {output_file}")


def main():
    """Entry point for the CLI."""
    app()
