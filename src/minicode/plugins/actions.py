"""Builtin CLI actions and action dispatch."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from minicode.plugins.schema import CliAction

if TYPE_CHECKING:
    from minicode.plugins.compose import ComposedCliAction
    from minicode.sdk import Minicode


@dataclass(frozen=True)
class ActionContext:
    """What an action's `run(ctx)` receives."""

    runtime: Minicode
    args: tuple[str, ...] = ()
    print: Callable[[str], None] = field(default=print)


def _format_timestamp(value_ms: int) -> str:
    return datetime.fromtimestamp(value_ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def _help(ctx: ActionContext) -> None:
    for action in ctx.runtime.get_cli_actions():
        aliases = f" ({', '.join(action.aliases)})" if action.aliases else ""
        line = f"{action.id}{aliases} - {action.title}"
        if action.description:
            line += f": {action.description}"
        ctx.print(line)


async def _sessions(ctx: ActionContext) -> None:
    sessions = await ctx.runtime.list_sessions()
    if not sessions:
        ctx.print("(no sessions)")
        return
    for summary in sessions:
        ctx.print(
            f"{summary.id}  {_format_timestamp(summary.updated_at)}  "
            f"{summary.provider}/{summary.model}  messages={summary.message_count}"
        )


def _tools(ctx: ActionContext) -> None:
    for name, tool in ctx.runtime.get_tools().items():
        ctx.print(f"{name} - {tool.description}")


def _plugins(ctx: ActionContext) -> None:
    plugins = ctx.runtime.get_loaded_plugins()
    if not plugins:
        ctx.print("(no plugins loaded)")
        return
    for plugin in plugins:
        ctx.print(f"{plugin.id} {plugin.version or '-'} {plugin.reference}")


def builtin_cli_actions() -> list[CliAction]:
    return [
        CliAction(id="help", title="Show available actions", aliases=["?"], allow_during_turn=True, run=_help),
        CliAction(id="sessions", title="List saved sessions", aliases=["ls"], run=_sessions),
        CliAction(id="tools", title="List available tools", allow_during_turn=True, run=_tools),
        CliAction(id="plugins", title="List loaded plugins", allow_during_turn=True, run=_plugins),
    ]


async def run_action(action: ComposedCliAction, ctx: ActionContext) -> Any:
    result = action.run(ctx)
    if inspect.isawaitable(result):
        result = await result
    return result
