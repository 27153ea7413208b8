"""Session state machine.

A `Session` owns one transcript. Turns run against a snapshot of that
transcript; when a turn's response resolves, its messages are committed
through a per-session FIFO queue so snapshots never interleave, even when
responses resolve out of order. Aborted turns keep their partial output and
get an interruption marker appended.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar

from loguru import logger

from minicode.config import DEFAULT_INTERRUPTION_MARKER
from minicode.runner.types import USAGE_KEYS, Message, Turn, TurnRequest, TurnResponse, TurnUsage
from minicode.session.queue import SerialTaskQueue
from minicode.session.schema import CoreSessionState

S = TypeVar("S", bound=CoreSessionState)


@dataclass(frozen=True)
class ResponseCommit(Generic[S]):
    """Input handed to an `apply_response` hook."""

    previous_state: S
    next_state: S
    request: TurnRequest
    request_messages: list[Message]
    response: TurnResponse


RunTurn: TypeAlias = Callable[[TurnRequest, list[Message]], Turn]


def now_ms() -> int:
    return int(time.time() * 1000)


def merge_usage(current: TurnUsage | None, added: TurnUsage | None) -> TurnUsage | None:
    """Add usage counters field by field; fields missing on both sides stay absent."""

    merged: dict[str, int] = {}
    for key in USAGE_KEYS:
        values = [getattr(item, key) for item in (current, added) if item is not None]
        numbers = [value for value in values if isinstance(value, int)]
        if numbers:
            merged[key] = sum(numbers)
    return TurnUsage(**merged) if merged else None


def has_assistant_message(messages: list[Message]) -> bool:
    return any(message.get("role") == "assistant" for message in messages)


def append_abort_messages(response: TurnResponse, messages: list[Message], interruption_marker: str) -> list[Message]:
    next_messages = list(messages)
    if response.text.strip() and not has_assistant_message(response.response_messages):
        next_messages.append({"role": "assistant", "content": response.text})
    next_messages.append({"role": "user", "content": interruption_marker})
    return next_messages


def build_next_state(
    state: S,
    request_messages: list[Message],
    response: TurnResponse,
    *,
    now: Callable[[], int],
    interruption_marker: str,
) -> S:
    messages = [*state.messages, *request_messages, *response.response_messages]
    if response.finish_reason == "abort":
        messages = append_abort_messages(response, messages, interruption_marker)

    return state.model_copy(
        deep=True,
        update={
            "messages": copy.deepcopy(messages),
            "updated_at": max(state.updated_at, now()),
            "usage_totals": merge_usage(state.usage_totals, response.total_usage),
        },
    )


class Session(Generic[S]):
    """One conversation: turns in, serialized commits out."""

    def __init__(
        self,
        *,
        state: S,
        run_turn: RunTurn,
        now: Callable[[], int] = now_ms,
        interruption_marker: str = DEFAULT_INTERRUPTION_MARKER,
        on_snapshot: Callable[[S], Awaitable[None] | None] | None = None,
        apply_response: Callable[[ResponseCommit[S]], S | Awaitable[S]] | None = None,
    ) -> None:
        self._schema: type[S] = type(state)
        self._state = self._validate(state)
        self._run_turn = run_turn
        self._now = now
        self._interruption_marker = interruption_marker
        self._on_snapshot = on_snapshot
        self._apply_response = apply_response
        self._commits = SerialTaskQueue(f"session:{self._state.id}")

    @property
    def id(self) -> str:
        return self._state.id

    def snapshot(self) -> S:
        """Deep, independent copy of the current state."""

        return self._state.model_copy(deep=True)

    def send(self, prompt: str, *, abort_signal: asyncio.Event | None = None) -> Turn:
        return self.turn(TurnRequest(prompt=prompt, abort_signal=abort_signal))

    def turn(self, request: TurnRequest) -> Turn:
        request_messages = request.request_messages()
        run = self._run_turn(request, copy.deepcopy(self._state.messages))
        response = asyncio.ensure_future(self._complete(run, request, request_messages))
        return Turn(events=run.events, response=response, abort=run.abort)

    async def _complete(self, run: Turn, request: TurnRequest, request_messages: list[Message]) -> TurnResponse:
        result = await run.response
        await self._commits.submit(lambda: self._commit(request, request_messages, result))
        return result

    async def _commit(self, request: TurnRequest, request_messages: list[Message], response: TurnResponse) -> None:
        previous = self._state
        next_state = self._validate(
            build_next_state(
                previous,
                request_messages,
                response,
                now=self._now,
                interruption_marker=self._interruption_marker,
            )
        )
        if self._apply_response is not None:
            applied = self._apply_response(
                ResponseCommit(
                    previous_state=previous.model_copy(deep=True),
                    next_state=next_state,
                    request=request,
                    request_messages=copy.deepcopy(request_messages),
                    response=response,
                )
            )
            if inspect.isawaitable(applied):
                applied = await applied
            next_state = self._validate(applied)

        self._state = next_state
        logger.debug(
            "session.commit id={} messages={} finish_reason={}",
            next_state.id,
            len(next_state.messages),
            response.finish_reason,
        )
        if self._on_snapshot is not None:
            result = self._on_snapshot(self.snapshot())
            if inspect.isawaitable(result):
                await result

    def _validate(self, state: S) -> S:
        return self._schema.model_validate(state.model_dump(by_alias=True))
