"""Plugin contracts, validated once at the load boundary."""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from minicode.session.schema import NonEmptyStr, SchemaVersion
from minicode.tools.output import Tool


class _ContractModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


def _check_tools(tools: dict[str, Any]) -> dict[str, Any]:
    for name, value in tools.items():
        if not name.strip():
            raise ValueError("tool names must not be empty")
        if not isinstance(value, Tool):
            raise ValueError(f"tool '{name}' must be a minicode Tool (see minicode.tools.define_tool)")
    return tools


PluginTools = Annotated[dict[str, Any], AfterValidator(_check_tools)]


class CliAction(_ContractModel):
    """One command-surface action contributed by the host or a plugin."""

    id: NonEmptyStr
    title: NonEmptyStr
    description: NonEmptyStr | None = None
    aliases: list[NonEmptyStr] = Field(default_factory=list)
    allow_during_turn: bool = False
    run: Callable[..., Any]


class CliContribution(_ContractModel):
    actions: list[CliAction] = Field(default_factory=list)


class SdkContribution(_ContractModel):
    tools: PluginTools = Field(default_factory=dict)
    instruction_fragments: list[str] = Field(default_factory=list)


class PluginContribution(_ContractModel):
    """What a plugin's `setup` returns; every section is optional."""

    sdk: SdkContribution = Field(default_factory=SdkContribution)
    cli: CliContribution = Field(default_factory=CliContribution)


class PluginManifest(_ContractModel):
    """What a plugin factory returns."""

    id: NonEmptyStr
    api_version: SchemaVersion
    version: NonEmptyStr | None = None
    setup: Callable[..., Any] | None = None
