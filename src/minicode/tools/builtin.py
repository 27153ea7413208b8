"""Builtin tool set bound to one working directory."""

from __future__ import annotations

from pathlib import Path

from minicode.config import ToolLimits
from minicode.session.artifacts import ArtifactStore
from minicode.tools.fs import create_edit_tool, create_read_tool, create_write_tool
from minicode.tools.output import Tool
from minicode.tools.shell import create_bash_tool

BUILTIN_TOOL_NAMES = ("read", "write", "edit", "bash")


def create_builtin_tools(
    cwd: Path,
    limits: ToolLimits | None = None,
    artifact_store: ArtifactStore | None = None,
) -> dict[str, Tool]:
    limits = limits or ToolLimits()
    return {
        "read": create_read_tool(
            cwd,
            max_read_bytes=limits.max_read_bytes,
            max_read_lines=limits.max_read_lines,
            artifact_store=artifact_store,
        ),
        "write": create_write_tool(cwd),
        "edit": create_edit_tool(cwd),
        "bash": create_bash_tool(
            cwd,
            default_timeout_ms=limits.default_command_timeout_ms,
            max_output_bytes=limits.max_command_output_bytes,
            artifact_store=artifact_store,
        ),
    }
