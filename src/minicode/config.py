"""Configuration management for minicode."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INTERRUPTION_MARKER = "[interrupted by user]"


def _default_sessions_dir() -> Path:
    return Path.home() / ".local" / "share" / "minicode" / "sessions"


def _default_global_config_dir() -> Path:
    return Path.home() / ".config" / "minicode"


class ToolLimits(BaseModel):
    """Byte, line and time budgets shared by the builtin tools."""

    max_read_bytes: int = Field(default=512_000, gt=0, description="Byte budget for read tool output")
    max_read_lines: int = Field(default=2_000, gt=0, description="Maximum lines returned by the read tool")
    max_command_output_bytes: int = Field(default=64_000, gt=0, description="Byte budget for bash tool output")
    default_command_timeout_ms: int = Field(default=120_000, gt=0, description="Default bash timeout")


def _default_provider_models() -> dict[str, list[str]]:
    return {
        "echo": ["echo-1"],
        "openai": ["gpt-4o-mini"],
        "anthropic": ["claude-3-5-sonnet-latest"],
        "google": ["gemini-2.5-flash"],
    }


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="MINICODE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime selection
    provider: str = Field(default="echo", description="Model provider id")
    model: str = Field(default="echo-1", description="Model name for the provider")
    provider_models: dict[str, list[str]] = Field(default_factory=_default_provider_models)

    # Storage
    sessions_dir: Path = Field(default_factory=_default_sessions_dir, description="Session storage root")
    global_config_dir: Path = Field(default_factory=_default_global_config_dir)

    # Extensions
    plugins: dict[str, dict[str, Any]] = Field(default_factory=dict, description="Plugin reference -> plugin config")

    # Tools and turns
    tool_limits: ToolLimits = Field(default_factory=ToolLimits)
    interruption_marker: str = Field(default=DEFAULT_INTERRUPTION_MARKER)

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


def get_settings(**overrides: Any) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit field values that win over environment and `.env`.

    Returns:
        Settings instance
    """
    return Settings(**overrides)
