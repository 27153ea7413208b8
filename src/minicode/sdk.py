"""Host facade: plugins, tools, agents and persisted sessions in one object."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, TypeAlias

from loguru import logger
from pydantic import ValidationError

from minicode import __version__
from minicode.config import Settings, get_settings
from minicode.errors import ConfigurationError, ModelNotConfiguredError, SessionError, SessionNotFoundError
from minicode.plugins.actions import builtin_cli_actions
from minicode.plugins.compose import ComposedCliAction, ComposedContributions, compose_contributions
from minicode.plugins.host import PluginHost
from minicode.plugins.load import LoadedPlugin, load_plugins
from minicode.runner.agent import Agent
from minicode.runner.types import LanguageModel, Message, Turn, TurnRequest
from minicode.session.artifacts import FsArtifactStore
from minicode.session.core import ResponseCommit, Session, now_ms
from minicode.session.queue import SerialTaskQueue
from minicode.session.repository import FsSessionRepository
from minicode.session.schema import ArtifactReference, SessionState, SessionSummary
from minicode.tools.builtin import create_builtin_tools
from minicode.tools.output import Tool, ToolOutput

SDK_VERSION = __version__


@dataclass(frozen=True)
class RuntimeOverride:
    provider: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class RuntimeSelection:
    provider: str
    model: str


@dataclass(frozen=True)
class PluginMetadata:
    reference: str
    id: str
    version: str | None


ModelFactory: TypeAlias = Callable[[Settings, RuntimeSelection], LanguageModel | None]


def resolve_runtime(settings: Settings, override: RuntimeOverride | None = None) -> RuntimeSelection:
    """Pick provider and model; a provider switch without a model takes that provider's first model."""

    provider = (override.provider if override else None) or settings.provider
    model = override.model.strip() if override and override.model else None
    if not model:
        if provider == settings.provider:
            model = settings.model
        else:
            models = settings.provider_models.get(provider) or []
            if not models:
                raise ConfigurationError(f"No models configured for provider '{provider}'")
            model = models[0]
    return RuntimeSelection(provider=provider, model=model)


def _artifact_from_output(output: Any) -> ArtifactReference | None:
    if isinstance(output, ToolOutput):
        meta = output.meta
    elif isinstance(output, Mapping):
        meta = output.get("meta")
    else:
        return None
    if not isinstance(meta, Mapping) or meta.get("artifact") is None:
        return None
    try:
        return ArtifactReference.model_validate(meta["artifact"])
    except ValidationError:
        return None


def extract_artifact_references(response_messages: Sequence[Message]) -> list[ArtifactReference]:
    """Artifact references found in `tool-result` parts of response messages."""

    artifacts: list[ArtifactReference] = []
    for message in response_messages:
        content = message.get("content") if isinstance(message, Mapping) else None
        if not isinstance(content, list):
            continue
        for part in content:
            if not isinstance(part, Mapping) or part.get("type") != "tool-result":
                continue
            artifact = _artifact_from_output(part.get("output"))
            if artifact is not None:
                artifacts.append(artifact)
    return artifacts


def merge_artifacts(
    current: list[ArtifactReference] | None,
    additional: list[ArtifactReference],
) -> list[ArtifactReference] | None:
    if not additional:
        return current
    by_id = {artifact.id: artifact for artifact in current or []}
    for artifact in additional:
        by_id[artifact.id] = artifact
    return list(by_id.values())


class MinicodeSession:
    """A persisted session: core `Session` plus serialized saves to the repository."""

    def __init__(self, runtime: Minicode, state: SessionState) -> None:
        self._runtime = runtime
        self._state = state.model_copy(deep=True)
        self._persist = SerialTaskQueue(f"persist:{state.id}")
        self._core: Session[SessionState] = Session(
            state=state,
            run_turn=self._run_turn,
            interruption_marker=runtime.settings.interruption_marker,
            apply_response=self._apply_response,
            on_snapshot=self._save,
        )

    @property
    def id(self) -> str:
        return self._state.id

    @property
    def cwd(self) -> str:
        return self._state.cwd

    @property
    def provider(self) -> str:
        return self._state.provider

    @property
    def model(self) -> str:
        return self._state.model

    def send(self, prompt: str, *, abort_signal: asyncio.Event | None = None) -> Turn:
        return self._core.send(prompt, abort_signal=abort_signal)

    def turn(self, request: TurnRequest) -> Turn:
        return self._core.turn(request)

    def snapshot(self) -> SessionState:
        return self._state.model_copy(deep=True)

    def _run_turn(self, request: TurnRequest, transcript: list[Message]) -> Turn:
        if request.abort_signal is None:
            request = replace(request, abort_signal=asyncio.Event())
        agent = self._runtime.build_agent(
            RuntimeOverride(provider=self._state.provider, model=self._state.model),
            session_id=self._state.id,
            abort_signal=request.abort_signal,
        )
        return agent.run_turn(request, transcript)

    @staticmethod
    def _apply_response(commit: ResponseCommit[SessionState]) -> SessionState:
        artifacts = extract_artifact_references(commit.response.response_messages)
        return commit.next_state.model_copy(
            update={"artifacts": merge_artifacts(commit.next_state.artifacts, artifacts)}
        )

    async def _save(self, state: SessionState) -> None:
        async def _write() -> None:
            await self._runtime.repository.save(state)
            self._state = state.model_copy(deep=True)

        await self._persist.submit(_write)


class Minicode:
    """Composed runtime. Build with `create_minicode`."""

    def __init__(
        self,
        *,
        settings: Settings,
        cwd: Path,
        host: PluginHost,
        plugins: list[LoadedPlugin],
        composed: ComposedContributions,
        repository: FsSessionRepository,
        artifact_store: FsArtifactStore,
        model_factory: ModelFactory | None = None,
    ) -> None:
        self.settings = settings
        self.cwd = cwd
        self.host = host
        self.repository = repository
        self.artifact_store = artifact_store
        self._plugins = plugins
        self._composed = composed
        self._model_factory = model_factory

    def get_runtime_catalog(self) -> dict[str, Any]:
        return {
            "providers": [
                {"id": provider, "models": list(models)} for provider, models in self.settings.provider_models.items()
            ]
        }

    def get_loaded_plugins(self) -> list[PluginMetadata]:
        return [
            PluginMetadata(
                reference=plugin.normalized_reference,
                id=plugin.manifest.id,
                version=plugin.manifest.version,
            )
            for plugin in self._plugins
        ]

    def get_cli_actions(self) -> list[ComposedCliAction]:
        return list(self._composed.cli_actions)

    def find_cli_action(self, key: str) -> ComposedCliAction | None:
        return self._composed.find_action(key)

    def get_tools(self) -> Mapping[str, Tool]:
        return self._composed.tools

    def build_instructions(self, selection: RuntimeSelection) -> str:
        return "\n".join(
            [
                f"Provider: {selection.provider}",
                f"Model: {selection.model}",
                *self._composed.instruction_fragments,
            ]
        )

    def create_model(self, selection: RuntimeSelection) -> LanguageModel:
        model = None
        if self._model_factory is not None:
            model = self._model_factory(self.settings, selection)
        if model is None:
            model = self.host.provide_model(selection.provider, selection.model, self.settings)
        if model is None:
            raise ModelNotConfiguredError(
                f"No language model available for provider '{selection.provider}' (model '{selection.model}')"
            )
        return model

    def build_agent(
        self,
        runtime: RuntimeOverride | None = None,
        *,
        session_id: str | None = None,
        abort_signal: asyncio.Event | None = None,
    ) -> Agent:
        selection = resolve_runtime(self.settings, runtime)
        tools: dict[str, Tool] = dict(self._composed.tools)
        if session_id is not None or abort_signal is not None:
            tools = {name: tool.bind(session_id=session_id, abort_signal=abort_signal) for name, tool in tools.items()}
        return Agent(
            model=self.create_model(selection),
            tools=tools,
            instructions=self.build_instructions(selection),
        )

    def create_agent(self, runtime: RuntimeOverride | None = None) -> Agent:
        return self.build_agent(runtime)

    def run_turn(
        self,
        request: TurnRequest,
        transcript: Sequence[Message] | None = None,
        runtime: RuntimeOverride | None = None,
    ) -> Turn:
        return self.build_agent(runtime).run_turn(request, transcript or ())

    async def open_session(
        self,
        id: str | None = None,
        *,
        create_if_missing: bool = True,
        runtime: RuntimeOverride | None = None,
        metadata: Mapping[str, Any] | None = None,
        cwd: Path | str | None = None,
    ) -> MinicodeSession:
        """Open (or create) a persisted session."""

        requested_id = id.strip() if id else None
        if not requested_id:
            state = self._new_state(uuid.uuid4().hex, runtime=runtime, metadata=metadata, cwd=cwd)
            await self.repository.create(state)
            return MinicodeSession(self, state)

        if not await self.repository.exists(requested_id):
            if not create_if_missing:
                raise SessionNotFoundError(f"Session '{requested_id}' not found")
            state = self._new_state(requested_id, runtime=runtime, metadata=metadata, cwd=cwd)
            await self.repository.create(state)
            return MinicodeSession(self, state)

        state = await self.repository.load(requested_id)
        updated = self._apply_open_overrides(state, runtime=runtime, metadata=metadata)
        if updated is not state:
            await self.repository.save(updated)
        return MinicodeSession(self, updated)

    async def list_sessions(self) -> list[SessionSummary]:
        return await self.repository.list()

    async def delete_session(self, session_id: str) -> None:
        normalized = session_id.strip()
        if not normalized:
            raise SessionError("Session id must not be empty")
        await self.repository.delete(normalized)

    def _new_state(
        self,
        session_id: str,
        *,
        runtime: RuntimeOverride | None,
        metadata: Mapping[str, Any] | None,
        cwd: Path | str | None,
    ) -> SessionState:
        selection = resolve_runtime(self.settings, runtime)
        now = now_ms()
        return SessionState(
            id=session_id,
            cwd=str(Path(cwd or self.cwd).resolve()),
            created_at=now,
            updated_at=now,
            provider=selection.provider,
            model=selection.model,
            messages=[],
            metadata=dict(metadata) if metadata else None,
        )

    @staticmethod
    def _apply_open_overrides(
        state: SessionState,
        *,
        runtime: RuntimeOverride | None,
        metadata: Mapping[str, Any] | None,
    ) -> SessionState:
        update: dict[str, Any] = {}
        if runtime is not None:
            provider = runtime.provider or state.provider
            if provider != state.provider:
                raise SessionError(
                    f"Cannot change provider for existing session '{state.id}' "
                    f"({state.provider} -> {provider}). Create a new session instead."
                )
            model = runtime.model.strip() if runtime.model else ""
            if model and model != state.model:
                update["model"] = model
        if metadata:
            update["metadata"] = {**(state.metadata or {}), **metadata}
        if not update:
            return state
        update["updated_at"] = max(state.updated_at, now_ms())
        return SessionState.model_validate(state.model_copy(update=update).model_dump(by_alias=True))


async def create_minicode(
    settings: Settings | None = None,
    *,
    cwd: Path | str | None = None,
    model_factory: ModelFactory | None = None,
    host: PluginHost | None = None,
) -> Minicode:
    """Load plugins, build builtin tools and compose the runtime."""

    settings = settings or get_settings()
    workdir = Path(cwd or Path.cwd()).resolve()
    host = host or PluginHost()

    plugins = await load_plugins(
        settings.plugins,
        host=host,
        cwd=workdir,
        global_config_dir=settings.global_config_dir.expanduser(),
        sdk_version=SDK_VERSION,
    )
    artifact_store = FsArtifactStore(settings.sessions_dir)
    builtins = create_builtin_tools(workdir, settings.tool_limits, artifact_store)
    composed = compose_contributions(builtins, plugins, builtin_actions=builtin_cli_actions())

    logger.info(
        "sdk.ready cwd={} plugins={} tools={} actions={}",
        workdir,
        len(plugins),
        len(composed.tools),
        len(composed.cli_actions),
    )
    return Minicode(
        settings=settings,
        cwd=workdir,
        host=host,
        plugins=plugins,
        composed=composed,
        repository=FsSessionRepository(settings.sessions_dir),
        artifact_store=artifact_store,
        model_factory=model_factory,
    )
