from types import MappingProxyType

import pytest

from minicode.errors import PluginComposeError
from minicode.plugins.compose import compose_contributions
from minicode.plugins.load import LoadedPlugin
from minicode.plugins.schema import CliAction, PluginContribution, PluginManifest
from minicode.tools import ToolInput, define_tool, success


class EmptyInput(ToolInput):
    pass


def _tool(name: str):
    return define_tool(name, description=name, input_model=EmptyInput, handler=lambda params, context: success(name))


def _action(action_id: str, *aliases: str) -> CliAction:
    return CliAction(id=action_id, title=action_id.title(), aliases=list(aliases), run=lambda ctx: None)


def _plugin(
    plugin_id: str,
    *,
    tools: tuple[str, ...] = (),
    actions: tuple[CliAction, ...] = (),
    fragments: tuple[str, ...] = (),
) -> LoadedPlugin:
    reference = f"./{plugin_id}.py"
    return LoadedPlugin(
        reference=reference,
        normalized_reference=reference,
        manifest=PluginManifest(id=plugin_id, api_version=1),
        contribution=PluginContribution.model_validate({
            "sdk": {"tools": {name: _tool(name) for name in tools}, "instructionFragments": list(fragments)},
            "cli": {"actions": list(actions)},
        }),
    )


def test_compose_merges_tools_fragments_and_actions_in_order() -> None:
    composed = compose_contributions(
        {"read": _tool("read")},
        [
            _plugin("alpha", tools=("search",), fragments=("alpha one", "alpha two"), actions=(_action("deploy", "d"),)),
            _plugin("beta", tools=("lint",), fragments=("beta",)),
        ],
        builtin_actions=[_action("help", "?")],
        builtin_fragments=["builtin"],
    )

    assert list(composed.tools) == ["read", "search", "lint"]
    assert composed.instruction_fragments == ("builtin", "alpha one", "alpha two", "beta")
    assert [action.id for action in composed.cli_actions] == ["help", "deploy"]
    deploy = composed.find_action(" D ")
    assert deploy is not None
    assert deploy.source_plugin_id == "alpha"
    assert deploy.source_reference == "./alpha.py"
    assert composed.find_action("missing") is None


def test_composed_tools_are_read_only() -> None:
    composed = compose_contributions({"read": _tool("read")}, [])

    assert isinstance(composed.tools, MappingProxyType)
    with pytest.raises(TypeError):
        composed.tools["write"] = _tool("write")  # type: ignore[index]


def test_plugin_tool_conflicting_with_builtin_fails() -> None:
    with pytest.raises(PluginComposeError, match=r"tool conflict: duplicate tool 'read' \(already registered by builtin\)"):
        compose_contributions({"read": _tool("read")}, [_plugin("alpha", tools=("read",))])


@pytest.mark.parametrize("order", [("alpha", "beta"), ("beta", "alpha")])
def test_tool_conflict_between_plugins_fails_in_either_order(order: tuple[str, str]) -> None:
    plugins = [_plugin(plugin_id, tools=("search",)) for plugin_id in order]

    with pytest.raises(PluginComposeError) as exc_info:
        compose_contributions({}, plugins)

    message = str(exc_info.value)
    assert "tool conflict: duplicate tool 'search'" in message
    assert f"./{order[0]}.py" in message
    assert f"./{order[1]}.py" in message
    assert exc_info.value.stage == "compose"


@pytest.mark.parametrize("order", [("alpha", "beta"), ("beta", "alpha")])
def test_action_alias_conflict_is_case_insensitive(order: tuple[str, str]) -> None:
    actions = {"alpha": _action("deploy", "Ship"), "beta": _action("release", "ship")}
    plugins = [_plugin(plugin_id, actions=(actions[plugin_id],)) for plugin_id in order]

    with pytest.raises(PluginComposeError, match=r"action conflict: duplicate action id/alias 'ship'") as exc_info:
        compose_contributions({}, plugins)

    assert f"already registered by ./{order[0]}.py" in str(exc_info.value)


def test_plugin_action_cannot_shadow_builtin_action() -> None:
    with pytest.raises(PluginComposeError, match="already registered by builtin"):
        compose_contributions({}, [_plugin("alpha", actions=(_action("HELP"),))], builtin_actions=[_action("help", "?")])


def test_duplicate_alias_within_one_action_fails() -> None:
    with pytest.raises(PluginComposeError, match="within action 'deploy'"):
        compose_contributions({}, [_plugin("alpha", actions=(_action("deploy", "d", "D"),))])
