"""Minicode command line entrypoint."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from minicode.errors import MinicodeError
from minicode.logging_utils import LogProfile, configure_logging
from minicode.plugins.actions import ActionContext, run_action
from minicode.runner.types import ErrorEvent, TextDeltaEvent, ToolCallEvent
from minicode.sdk import Minicode, RuntimeOverride, create_minicode

app = typer.Typer(name="minicode", help="Agentic coding assistant runtime", add_completion=False)


def _load_runtime(workspace: Path | None, *, profile: LogProfile = "default") -> Minicode:
    configure_logging(profile=profile)
    return asyncio.run(create_minicode(cwd=(workspace or Path.cwd()).resolve()))


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"error: {exc}", err=True)
    return typer.Exit(code=1)


@app.command("run")
def run(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    session_id: str | None = typer.Option(None, "--session-id", help="Session to continue or create"),
    model: str | None = typer.Option(None, "--model", help="Model override for the session"),
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Workspace root"),  # noqa: B008
) -> None:
    """Run one turn and stream the reply to stdout."""

    try:
        runtime = _load_runtime(workspace, profile="chat")
        asyncio.run(_run_turn(runtime, prompt, session_id=session_id, model=model))
    except MinicodeError as exc:
        raise _fail(exc) from exc


async def _run_turn(runtime: Minicode, prompt: str, *, session_id: str | None, model: str | None) -> None:
    session = await runtime.open_session(session_id, runtime=RuntimeOverride(model=model) if model else None)
    turn = session.send(prompt)
    async for event in turn.events:
        if isinstance(event, TextDeltaEvent):
            typer.echo(event.text, nl=False)
        elif isinstance(event, ToolCallEvent):
            typer.echo(f"\n[tool {event.tool_name}]", err=True)
        elif isinstance(event, ErrorEvent):
            typer.echo(f"\n[{event.error.name}] {event.error.message}", err=True)
    response = await turn.response
    typer.echo()
    typer.echo(f"session={session.id} finish={response.finish_reason}", err=True)


@app.command("sessions")
def list_sessions(
    workspace: Path | None = typer.Option(None, "--workspace", "-w"),  # noqa: B008
) -> None:
    """List saved sessions, most recent first."""

    try:
        runtime = _load_runtime(workspace)
        summaries = asyncio.run(runtime.list_sessions())
    except MinicodeError as exc:
        raise _fail(exc) from exc
    if not summaries:
        typer.echo("(no sessions)")
        return
    for summary in summaries:
        typer.echo(f"{summary.id} {summary.provider}/{summary.model} messages={summary.message_count}")


@app.command("delete")
def delete_session(
    session_id: str = typer.Argument(..., help="Session id"),
    workspace: Path | None = typer.Option(None, "--workspace", "-w"),  # noqa: B008
) -> None:
    """Delete a saved session and its artifacts."""

    try:
        runtime = _load_runtime(workspace)
        asyncio.run(runtime.delete_session(session_id))
    except MinicodeError as exc:
        raise _fail(exc) from exc
    typer.echo(f"deleted {session_id}")


@app.command("action")
def action(
    action_id: str = typer.Argument(..., help="Action id or alias"),
    args: list[str] | None = typer.Argument(None, help="Arguments passed to the action"),  # noqa: B008
    workspace: Path | None = typer.Option(None, "--workspace", "-w"),  # noqa: B008
) -> None:
    """Run a builtin or plugin action by id or alias."""

    try:
        runtime = _load_runtime(workspace)
        selected = runtime.find_cli_action(action_id)
        if selected is None:
            typer.echo(f"unknown action: {action_id}", err=True)
            raise typer.Exit(code=2)
        asyncio.run(run_action(selected, ActionContext(runtime=runtime, args=tuple(args or ()), print=typer.echo)))
    except MinicodeError as exc:
        raise _fail(exc) from exc


@app.command("hooks")
def list_hooks(
    workspace: Path | None = typer.Option(None, "--workspace", "-w"),  # noqa: B008
) -> None:
    """Show hook implementation mapping."""

    try:
        runtime = _load_runtime(workspace)
    except MinicodeError as exc:
        raise _fail(exc) from exc
    for hook_name, plugins in runtime.host.hook_report().items():
        typer.echo(f"{hook_name}: {', '.join(plugins)}")


if __name__ == "__main__":
    app()
