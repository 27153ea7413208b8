"""Shell command tool factory."""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
from pathlib import Path
from typing import Any

from pydantic import Field

from minicode.session.artifacts import ArtifactStore
from minicode.tools.output import Tool, ToolCallContext, ToolInput, ToolOutput, define_tool, failure, success
from minicode.tools.truncation import truncate_with_artifact


class BashInput(ToolInput):
    """Run a shell command in the session working directory."""

    command: str = Field(..., min_length=1, description="Shell command to run")
    timeout_ms: int | None = Field(default=None, gt=0, description="Timeout in milliseconds")


def format_command_output(stdout: str, stderr: str) -> str:
    parts = []
    if stdout.strip():
        parts.append(f"stdout:\n{stdout.rstrip()}")
    if stderr.strip():
        parts.append(f"stderr:\n{stderr.rstrip()}")
    if not parts:
        return "(no output)"
    return "\n\n".join(parts)


async def _run_command(
    command: str,
    *,
    cwd: Path,
    timeout_seconds: float,
    abort_signal: asyncio.Event | None,
) -> tuple[int | None, str, str, str | None]:
    """Run through `bash -lc`; returns (exit code, stdout, stderr, interruption reason)."""

    bash_executable = shutil.which("bash") or "bash"
    process = await asyncio.create_subprocess_exec(
        bash_executable,
        "-lc",
        command,
        cwd=str(cwd),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    communicate = asyncio.ensure_future(process.communicate())
    waiters: set[asyncio.Future[Any]] = {communicate}
    abort_wait: asyncio.Future[Any] | None = None
    if abort_signal is not None:
        abort_wait = asyncio.ensure_future(abort_signal.wait())
        waiters.add(abort_wait)

    reason: str | None = None
    try:
        done, _pending = await asyncio.wait(waiters, timeout=timeout_seconds, return_when=asyncio.FIRST_COMPLETED)
        if communicate not in done:
            reason = "aborted" if abort_wait is not None and abort_wait in done else "timeout"
            _kill_process_group(process)
        stdout_bytes, stderr_bytes = await communicate
    finally:
        if abort_wait is not None and not abort_wait.done():
            abort_wait.cancel()
        if not communicate.done():
            _kill_process_group(process)
            communicate.cancel()

    return (
        process.returncode,
        stdout_bytes.decode("utf-8", errors="replace"),
        stderr_bytes.decode("utf-8", errors="replace"),
        reason,
    )


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        return


def create_bash_tool(
    cwd: Path,
    *,
    default_timeout_ms: int,
    max_output_bytes: int,
    artifact_store: ArtifactStore | None = None,
) -> Tool:
    """Create the bash tool bound to a working directory."""

    async def _handler(params: BashInput, context: ToolCallContext) -> ToolOutput:
        timeout_ms = params.timeout_ms or default_timeout_ms
        try:
            exit_code, stdout, stderr, reason = await _run_command(
                params.command,
                cwd=cwd,
                timeout_seconds=timeout_ms / 1000,
                abort_signal=context.abort_signal,
            )
        except OSError as exc:
            return failure("Command execution failed", {"command": params.command, "error": str(exc)})

        result = await truncate_with_artifact(
            format_command_output(stdout, stderr),
            max_output_bytes,
            artifact_store=artifact_store,
            session_id=context.session_id,
            label="bash-output",
        )
        details = {"command": params.command, "exit_code": exit_code}
        meta = {"exit_code": exit_code, **result.meta()}

        if reason == "timeout":
            return failure(f"Command timed out after {timeout_ms}ms\n\n{result.text}", details, {**meta, "timeout_ms": timeout_ms})
        if reason == "aborted":
            return failure(f"Command aborted\n\n{result.text}", details, meta)

        ok = exit_code == 0
        status = f"Command succeeded (exit {exit_code})" if ok else f"Command failed (exit {exit_code})"
        return (success if ok else failure)(f"{status}\n\n{result.text}", details, meta)

    return define_tool(
        "bash",
        description="Execute a shell command in the session working directory",
        input_model=BashInput,
        handler=_handler,
    )
