"""Filesystem tool factories."""

from __future__ import annotations

import asyncio
from pathlib import Path

from pydantic import Field

from minicode.session.artifacts import ArtifactStore
from minicode.tools.output import Tool, ToolCallContext, ToolInput, ToolOutput, define_tool, failure, success
from minicode.tools.truncation import truncate_with_artifact


class ReadInput(ToolInput):
    """Read a UTF-8 text file with optional 1-based start line and line limit."""

    file_path: str = Field(..., min_length=1, description="Path to the file")
    offset: int | None = Field(default=None, gt=0, description="First line to read (1-based)")
    limit: int | None = Field(default=None, gt=0, description="Maximum number of lines to read")


class WriteInput(ToolInput):
    """Write UTF-8 content to a file."""

    file_path: str = Field(..., min_length=1, description="Path to the file")
    content: str = Field(..., description="File contents")


class EditInput(ToolInput):
    """Replace one exact text match in a file."""

    file_path: str = Field(..., min_length=1, description="Path to the file")
    old_text: str = Field(..., min_length=1, description="Text to replace; must match exactly once")
    new_text: str = Field(..., description="Replacement text")


def resolve_path(cwd: Path, raw_path: str) -> Path:
    path = Path(raw_path).expanduser()
    if path.is_absolute():
        return path
    return cwd / path


def create_read_tool(
    cwd: Path,
    *,
    max_read_bytes: int,
    max_read_lines: int,
    artifact_store: ArtifactStore | None = None,
) -> Tool:
    """Create the read tool bound to a working directory."""

    async def _handler(params: ReadInput, context: ToolCallContext) -> ToolOutput:
        file_path = resolve_path(cwd, params.file_path)
        if not file_path.is_file():
            return failure(f"File not found: {params.file_path}")
        try:
            text = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except UnicodeDecodeError:
            return failure(f"Cannot read binary file: {params.file_path}")

        all_lines = text.split("\n")
        start_line = params.offset or 1
        max_lines = min(params.limit or max_read_lines, max_read_lines)
        selected = all_lines[start_line - 1 : start_line - 1 + max_lines]
        numbered = "\n".join(f"{start_line + idx}: {line}" for idx, line in enumerate(selected))

        result = await truncate_with_artifact(
            numbered,
            max_read_bytes,
            artifact_store=artifact_store,
            session_id=context.session_id,
            label="read-output",
        )
        return success(
            result.text,
            {"file_path": str(file_path), "line_count": len(selected)},
            result.meta(),
        )

    return define_tool("read", description="Read a UTF-8 text file", input_model=ReadInput, handler=_handler)


def create_write_tool(cwd: Path) -> Tool:
    """Create the write tool bound to a working directory."""

    async def _handler(params: WriteInput, context: ToolCallContext) -> ToolOutput:
        _ = context
        file_path = resolve_path(cwd, params.file_path)

        def _write() -> None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(params.content, encoding="utf-8")

        await asyncio.to_thread(_write)
        return success(
            f"Wrote {len(params.content)} characters to {params.file_path}",
            {"file_path": str(file_path), "bytes": len(params.content.encode("utf-8"))},
        )

    return define_tool("write", description="Write UTF-8 text content to a file", input_model=WriteInput, handler=_handler)


def create_edit_tool(cwd: Path) -> Tool:
    """Create the edit tool bound to a working directory."""

    async def _handler(params: EditInput, context: ToolCallContext) -> ToolOutput:
        _ = context
        file_path = resolve_path(cwd, params.file_path)
        if not file_path.is_file():
            return failure(f"File not found: {params.file_path}")

        content = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        matches = content.count(params.old_text)
        if matches == 0:
            return failure("edit failed: oldText was not found exactly once")
        if matches > 1:
            return failure("edit failed: oldText matches multiple locations")

        updated = content.replace(params.old_text, params.new_text, 1)
        await asyncio.to_thread(file_path.write_text, updated, encoding="utf-8")
        return success(
            f"Updated {params.file_path}",
            {"file_path": str(file_path), "replaced_characters": len(params.old_text)},
        )

    return define_tool(
        "edit",
        description="Replace one exact string match in a text file",
        input_model=EditInput,
        handler=_handler,
    )
