"""Session state schemas."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from minicode.runner.types import TurnUsage

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
# Exactly the integer 1: strict mode rejects True and 1.0.
SchemaVersion = Annotated[Literal[1], Field(strict=True)]
MESSAGE_ROLES = frozenset({"system", "user", "assistant", "tool"})


def _check_message(message: dict[str, Any]) -> dict[str, Any]:
    role = message.get("role")
    if role not in MESSAGE_ROLES:
        raise ValueError(f"unsupported message role {role!r}")
    content = message.get("content")
    if not isinstance(content, (str, list)):
        raise ValueError("message content must be a string or a list of parts")
    return message


TurnMessage = Annotated[dict[str, Any], AfterValidator(_check_message)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class CoreSessionState(_CamelModel):
    """State owned by one `Session`; extra fields are carried through untouched."""

    id: NonEmptyStr
    created_at: int = Field(ge=0)
    updated_at: int = Field(ge=0)
    messages: list[TurnMessage] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    usage_totals: TurnUsage | None = None


class ArtifactReference(BaseModel):
    """Durable overflow content written during tool execution. Immutable."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True)

    id: NonEmptyStr
    session_id: NonEmptyStr
    kind: Literal["text", "bytes"]
    relative_path: NonEmptyStr
    byte_length: int = Field(ge=0)
    created_at: int = Field(ge=0)


class SessionState(CoreSessionState):
    """Persisted session document (`session.json`)."""

    version: SchemaVersion = 1
    cwd: NonEmptyStr
    provider: NonEmptyStr
    model: NonEmptyStr
    artifacts: list[ArtifactReference] | None = None


class SessionSummary(BaseModel):
    id: str
    cwd: str
    provider: str
    model: str
    created_at: int
    updated_at: int
    message_count: int = 0

    @classmethod
    def from_state(cls, state: SessionState) -> SessionSummary:
        return cls(
            id=state.id,
            cwd=state.cwd,
            provider=state.provider,
            model=state.model,
            created_at=state.created_at,
            updated_at=state.updated_at,
            message_count=len(state.messages),
        )


def dump_state(state: CoreSessionState) -> dict[str, Any]:
    """JSON-ready camelCase document for a state."""

    return state.model_dump(mode="json", by_alias=True, exclude_none=True)
