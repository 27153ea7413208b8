"""Turn request, event and response types."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeAlias

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from minicode.errors import TurnRequestError

Message: TypeAlias = dict[str, Any]
FinishReason: TypeAlias = str

USAGE_KEYS = ("input_tokens", "output_tokens", "total_tokens", "reasoning_tokens", "cached_input_tokens")


class TurnUsage(BaseModel):
    """Token usage counters; absent fields mean the provider did not report them."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    reasoning_tokens: int | None = None
    cached_input_tokens: int | None = None


EMPTY_USAGE = TurnUsage(input_tokens=0, output_tokens=0, total_tokens=0)


@dataclass(frozen=True)
class TurnRequest:
    """One turn request: either a prompt or explicit messages, never both."""

    prompt: str | None = None
    messages: Sequence[Message] | None = None
    abort_signal: asyncio.Event | None = None

    def __post_init__(self) -> None:
        if (self.prompt is None) == (self.messages is None):
            raise TurnRequestError("Turn request requires exactly one of prompt or messages")

    def request_messages(self) -> list[Message]:
        """Messages this request contributes to a transcript."""

        if self.messages is not None:
            return [dict(message) for message in self.messages]
        prompt = (self.prompt or "").strip()
        if not prompt:
            raise TurnRequestError("Turn request prompt must not be empty")
        return [{"role": "user", "content": prompt}]


@dataclass(frozen=True)
class SerializedError:
    name: str
    message: str


# Normalized turn events


@dataclass(frozen=True)
class TextDeltaEvent:
    text: str
    type: Literal["text_delta"] = "text_delta"


@dataclass(frozen=True)
class ReasoningDeltaEvent:
    text: str
    type: Literal["reasoning_delta"] = "reasoning_delta"


@dataclass(frozen=True)
class ToolCallEvent:
    tool_call_id: str
    tool_name: str
    input: Any
    provider_executed: bool | None = None
    type: Literal["tool_call"] = "tool_call"


@dataclass(frozen=True)
class ToolResultEvent:
    tool_call_id: str
    tool_name: str
    input: Any
    output: Any
    provider_executed: bool | None = None
    type: Literal["tool_result"] = "tool_result"


@dataclass(frozen=True)
class ToolErrorEvent:
    tool_call_id: str
    tool_name: str
    input: Any
    error: SerializedError
    provider_executed: bool | None = None
    type: Literal["tool_error"] = "tool_error"


@dataclass(frozen=True)
class StepFinishEvent:
    finish_reason: FinishReason
    usage: TurnUsage
    type: Literal["step_finish"] = "step_finish"


@dataclass(frozen=True)
class FinishEvent:
    finish_reason: FinishReason
    total_usage: TurnUsage
    type: Literal["finish"] = "finish"


@dataclass(frozen=True)
class AbortEvent:
    type: Literal["abort"] = "abort"


@dataclass(frozen=True)
class ErrorEvent:
    error: SerializedError
    type: Literal["error"] = "error"


TurnEvent: TypeAlias = (
    TextDeltaEvent
    | ReasoningDeltaEvent
    | ToolCallEvent
    | ToolResultEvent
    | ToolErrorEvent
    | StepFinishEvent
    | FinishEvent
    | AbortEvent
    | ErrorEvent
)


@dataclass(frozen=True)
class TurnResponse:
    """Terminal result of one turn."""

    text: str
    response_messages: list[Message]
    finish_reason: FinishReason
    total_usage: TurnUsage


@dataclass
class Turn:
    """Handle for one running turn.

    `events` is drained at most once; `response` settles after every event has
    been pushed; `abort()` is idempotent and a no-op after the turn settles.
    """

    events: AsyncIterator[TurnEvent]
    response: asyncio.Future[TurnResponse]
    abort: Callable[[], None]


# Raw provider stream parts


@dataclass(frozen=True)
class StreamPart:
    """Raw provider part. `type` values follow the provider wire names."""

    type: str
    text: str = ""
    tool_call_id: str = ""
    tool_name: str = ""
    input: Any = None
    output: Any = None
    error: Any = None
    finish_reason: FinishReason = ""
    usage: TurnUsage | None = None
    provider_executed: bool | None = None


@dataclass(frozen=True)
class StepResult:
    """One completed model step and the messages it produced."""

    response_messages: list[Message] = field(default_factory=list)
    finish_reason: FinishReason = "stop"
    usage: TurnUsage | None = None


class ModelStreamLike(Protocol):
    def parts(self) -> AsyncIterator[StreamPart]: ...

    async def steps(self) -> list[StepResult]: ...

    async def finish_reason(self) -> FinishReason: ...

    async def total_usage(self) -> TurnUsage: ...


class LanguageModel(Protocol):
    """Opaque model capability producing a token/tool-call stream."""

    provider: str
    model_id: str

    def stream(
        self,
        *,
        messages: list[Message],
        tools: Mapping[str, Any],
        instructions: str | None,
        abort_signal: asyncio.Event,
    ) -> ModelStreamLike | Awaitable[ModelStreamLike]: ...
