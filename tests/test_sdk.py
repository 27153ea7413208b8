import asyncio
import json
from pathlib import Path

import pytest

from minicode.config import Settings, ToolLimits
from minicode.errors import ConfigurationError, ModelNotConfiguredError, SessionError, SessionNotFoundError
from minicode.plugins.host import PluginHost
from minicode.runner.types import StreamPart, TurnRequest, TurnUsage
from minicode.sdk import RuntimeOverride, create_minicode, extract_artifact_references, resolve_runtime
from support import ScriptedModel, reply_parts


async def _runtime(settings: Settings, workspace: Path, model_factory=None):
    return await create_minicode(
        settings,
        cwd=workspace,
        model_factory=model_factory,
        host=PluginHost(load_entrypoints=False),
    )


def test_resolve_runtime_defaults_and_provider_switch(settings: Settings) -> None:
    assert resolve_runtime(settings).provider == "echo"
    assert resolve_runtime(settings).model == "echo-1"

    switched = resolve_runtime(settings, RuntimeOverride(provider="openai"))
    assert (switched.provider, switched.model) == ("openai", "gpt-4o-mini")

    explicit = resolve_runtime(settings, RuntimeOverride(provider="openai", model=" gpt-x "))
    assert explicit.model == "gpt-x"

    with pytest.raises(ConfigurationError, match="No models configured"):
        resolve_runtime(settings, RuntimeOverride(provider="unknown"))


@pytest.mark.asyncio
async def test_runtime_exposes_builtin_surface(settings: Settings, workspace: Path) -> None:
    runtime = await _runtime(settings, workspace)

    assert set(runtime.get_tools()) == {"read", "write", "edit", "bash"}
    assert [action.id for action in runtime.get_cli_actions()] == ["help", "sessions", "tools", "plugins"]
    assert runtime.find_cli_action("ls").id == "sessions"
    assert runtime.get_loaded_plugins() == []
    providers = runtime.get_runtime_catalog()["providers"]
    assert {"id": "echo", "models": ["echo-1"]} in providers


@pytest.mark.asyncio
async def test_session_turn_is_persisted_and_reloaded(settings: Settings, workspace: Path) -> None:
    runtime = await _runtime(settings, workspace)
    session = await runtime.open_session("demo", metadata={"title": "Demo"})

    turn = session.send("hello world")
    response = await turn.response

    assert response.text == "hello world"
    session_file = settings.sessions_dir / "demo" / "session.json"
    document = json.loads(session_file.read_text(encoding="utf-8"))
    assert document["id"] == "demo"
    assert document["cwd"] == str(workspace.resolve())
    assert document["metadata"] == {"title": "Demo"}
    assert [message["role"] for message in document["messages"]] == ["user", "assistant"]
    assert session.snapshot().messages[-1] == {"role": "assistant", "content": "hello world"}

    reopened = await runtime.open_session("demo", create_if_missing=False)
    assert len(reopened.snapshot().messages) == 2
    assert reopened.provider == "echo"


@pytest.mark.asyncio
async def test_open_session_without_id_creates_new_session(settings: Settings, workspace: Path) -> None:
    runtime = await _runtime(settings, workspace)

    first = await runtime.open_session()
    second = await runtime.open_session()

    assert first.id != second.id
    assert (settings.sessions_dir / first.id / "session.json").is_file()


@pytest.mark.asyncio
async def test_open_missing_session_without_create_fails(settings: Settings, workspace: Path) -> None:
    runtime = await _runtime(settings, workspace)

    with pytest.raises(SessionNotFoundError):
        await runtime.open_session("ghost", create_if_missing=False)


@pytest.mark.asyncio
async def test_reopen_rejects_provider_change_and_applies_model_and_metadata(
    settings: Settings, workspace: Path
) -> None:
    runtime = await _runtime(settings, workspace)
    await runtime.open_session("s1", metadata={"a": 1})

    with pytest.raises(SessionError, match="Cannot change provider"):
        await runtime.open_session("s1", runtime=RuntimeOverride(provider="openai"))

    reopened = await runtime.open_session("s1", runtime=RuntimeOverride(model="echo-2"), metadata={"b": 2})
    assert reopened.model == "echo-2"
    stored = await runtime.repository.load("s1")
    assert stored.model == "echo-2"
    assert stored.metadata == {"a": 1, "b": 2}


@pytest.mark.asyncio
async def test_list_and_delete_sessions(settings: Settings, workspace: Path) -> None:
    runtime = await _runtime(settings, workspace)
    session = await runtime.open_session("listed")
    await session.send("one two").response

    summaries = await runtime.list_sessions()
    assert [summary.id for summary in summaries] == ["listed"]
    assert summaries[0].message_count == 2

    await runtime.delete_session("listed")
    assert await runtime.list_sessions() == []
    with pytest.raises(SessionError):
        await runtime.delete_session("  ")


@pytest.mark.asyncio
async def test_unknown_provider_has_no_model(workspace: Path, tmp_path: Path) -> None:
    settings = Settings(
        provider="nope",
        model="nope-1",
        provider_models={"nope": ["nope-1"]},
        sessions_dir=tmp_path / "sessions",
        global_config_dir=tmp_path / "config",
        plugins={},
    )
    runtime = await _runtime(settings, workspace)

    with pytest.raises(ModelNotConfiguredError, match="provider 'nope'"):
        runtime.create_agent()


@pytest.mark.asyncio
async def test_agent_receives_instructions_and_bound_tools(settings: Settings, workspace: Path) -> None:
    model = ScriptedModel(reply_parts("ok"), provider="echo", model_id="echo-1")
    selections = []

    def factory(_settings, selection):
        selections.append(selection)
        return model

    runtime = await _runtime(settings, workspace, model_factory=factory)
    session = await runtime.open_session("bound")
    await session.send("hi").response

    call = model.calls[0]
    assert call["instructions"].startswith("Provider: echo\nModel: echo-1")
    assert set(call["tools"]) == {"read", "write", "edit", "bash"}
    assert call["tools"]["read"].context.session_id == "bound"
    assert call["tools"]["read"].context.abort_signal is call["abort_signal"]
    assert selections[0].provider == "echo"


@pytest.mark.asyncio
async def test_stateless_run_turn_uses_default_runtime(settings: Settings, workspace: Path) -> None:
    runtime = await _runtime(settings, workspace)

    response = await runtime.run_turn(TurnRequest(prompt="ping pong")).response

    assert response.text == "ping pong"
    assert await runtime.list_sessions() == []


@pytest.mark.asyncio
async def test_tool_artifacts_are_recorded_on_session(settings: Settings, workspace: Path, tmp_path: Path) -> None:
    settings = settings.model_copy(update={"tool_limits": ToolLimits(max_read_bytes=64)})
    (workspace / "big.txt").write_text("\n".join(f"line {index}" for index in range(200)), encoding="utf-8")
    usage = TurnUsage(input_tokens=1, output_tokens=1, total_tokens=2)

    async def read_big_file(abort_signal: asyncio.Event):
        read = model.calls[-1]["tools"]["read"]
        output = await read.execute({"filePath": "big.txt"})
        yield StreamPart(type="start")
        yield StreamPart(type="tool-call", tool_call_id="call-1", tool_name="read", input={"filePath": "big.txt"})
        yield StreamPart(
            type="tool-result",
            tool_call_id="call-1",
            tool_name="read",
            input={"filePath": "big.txt"},
            output=output.output_message,
        )
        yield StreamPart(
            type="finish-step",
            finish_reason="stop",
            usage=usage,
            output=[
                {
                    "role": "assistant",
                    "content": [{"type": "tool-call", "toolCallId": "call-1", "toolName": "read", "input": {}}],
                },
                {
                    "role": "tool",
                    "content": [
                        {
                            "type": "tool-result",
                            "toolCallId": "call-1",
                            "toolName": "read",
                            "output": output.model_dump(mode="json", by_alias=True),
                        }
                    ],
                },
            ],
        )
        yield StreamPart(type="finish", finish_reason="stop", usage=usage)

    model = ScriptedModel(read_big_file, provider="echo", model_id="echo-1")
    runtime = await _runtime(settings, workspace, model_factory=lambda _settings, _selection: model)
    session = await runtime.open_session("with-artifacts")

    await session.send("read it").response

    artifacts = session.snapshot().artifacts
    assert artifacts is not None and len(artifacts) == 1
    artifact = artifacts[0]
    assert artifact.session_id == "with-artifacts"
    assert (settings.sessions_dir / artifact.relative_path).is_file()
    stored = await runtime.repository.load("with-artifacts")
    assert [item.id for item in stored.artifacts or []] == [artifact.id]


def test_extract_artifact_references_ignores_non_tool_parts() -> None:
    messages = [
        {"role": "assistant", "content": "plain"},
        {"role": "tool", "content": [{"type": "tool-result", "output": {"meta": {"truncated": False}}}]},
        {"role": "tool", "content": [{"type": "text", "text": "x"}]},
    ]

    assert extract_artifact_references(messages) == []
