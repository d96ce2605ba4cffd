"""Configuration for mcpconvert."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: Literal["console", "json"] = Field(default="console", description="Log renderer")


class ConverterSettings(BaseSettings):
    """Converter settings. Loads from environment variables prefixed with MCPCONVERT_."""

    model_config = SettingsConfigDict(
        env_prefix="MCPCONVERT_",
        env_nested_delimiter="__",  # e.g., MCPCONVERT_LOGGING__LEVEL
        extra="ignore",
    )

    include_source_map: bool = Field(default=False, description="Produce a source map alongside the MCP document.")
    diagnostic_mode: bool = Field(default=False, description="Collect processing steps, warnings and timings.")
    max_document_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Largest input document accepted, in bytes.",
    )
    json_indent: int = Field(default=2, ge=0, le=8, description="Indentation of the MCP JSON output.")
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
