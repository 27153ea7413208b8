"""Merge builtin and plugin contributions into one immutable runtime surface."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from minicode.errors import PluginComposeError
from minicode.plugins.load import LoadedPlugin
from minicode.plugins.schema import CliAction
from minicode.tools.output import Tool

BUILTIN_SOURCE = "builtin"


@dataclass(frozen=True)
class ComposedCliAction:
    id: str
    title: str
    description: str | None
    aliases: tuple[str, ...]
    allow_during_turn: bool
    run: Callable[..., Any]
    source_plugin_id: str
    source_reference: str

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.id, *self.aliases)


@dataclass(frozen=True)
class ComposedContributions:
    """Read-only result of composition; safe to share across turns."""

    tools: Mapping[str, Tool]
    instruction_fragments: tuple[str, ...]
    cli_actions: tuple[ComposedCliAction, ...]

    def find_action(self, key: str) -> ComposedCliAction | None:
        wanted = normalize_action_key(key)
        for action in self.cli_actions:
            if wanted in action.keys:
                return action
        return None


def normalize_action_key(value: str) -> str:
    return value.strip().lower()


class _ActionRegistry:
    def __init__(self) -> None:
        self.actions: list[ComposedCliAction] = []
        self._owners: dict[str, str] = {}

    def add(self, action: CliAction, *, plugin_id: str, reference: str) -> None:
        action_id = normalize_action_key(action.id)
        aliases = tuple(normalize_action_key(alias) for alias in action.aliases)
        local_keys: set[str] = set()
        for key in (action_id, *aliases):
            if not key:
                raise PluginComposeError(reference, "action conflict: command id or alias cannot be empty")
            if key in local_keys:
                raise PluginComposeError(
                    reference,
                    f"action conflict: duplicate action id/alias '{key}' within action '{action_id}'",
                )
            local_keys.add(key)
            owner = self._owners.get(key)
            if owner is not None:
                raise PluginComposeError(
                    reference,
                    f"action conflict: duplicate action id/alias '{key}' (already registered by {owner})",
                )

        for key in local_keys:
            self._owners[key] = reference
        self.actions.append(
            ComposedCliAction(
                id=action_id,
                title=action.title,
                description=action.description,
                aliases=aliases,
                allow_during_turn=action.allow_during_turn,
                run=action.run,
                source_plugin_id=plugin_id,
                source_reference=reference,
            )
        )


def compose_contributions(
    builtin_tools: Mapping[str, Tool],
    plugins: Sequence[LoadedPlugin],
    *,
    builtin_actions: Iterable[CliAction] = (),
    builtin_fragments: Iterable[str] = (),
) -> ComposedContributions:
    """Fail on the first tool or action conflict; otherwise keep declaration order."""

    tools: dict[str, Tool] = dict(builtin_tools)
    tool_owners = dict.fromkeys(tools, BUILTIN_SOURCE)
    fragments: list[str] = list(builtin_fragments)
    registry = _ActionRegistry()

    for action in builtin_actions:
        registry.add(action, plugin_id=BUILTIN_SOURCE, reference=BUILTIN_SOURCE)

    for plugin in plugins:
        reference = plugin.normalized_reference
        sdk = plugin.contribution.sdk
        for tool_name, tool in sdk.tools.items():
            if tool_name in tools:
                raise PluginComposeError(
                    reference,
                    f"tool conflict: duplicate tool '{tool_name}' (already registered by {tool_owners[tool_name]})",
                )
            tools[tool_name] = tool
            tool_owners[tool_name] = reference

        fragments.extend(sdk.instruction_fragments)

        for action in plugin.contribution.cli.actions:
            registry.add(action, plugin_id=plugin.manifest.id, reference=reference)

    return ComposedContributions(
        tools=MappingProxyType(tools),
        instruction_fragments=tuple(fragments),
        cli_actions=tuple(registry.actions),
    )
