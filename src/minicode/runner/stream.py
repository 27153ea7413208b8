"""Stream-to-turn adapter.

A provider stream is consumed exactly once by a background task that pushes
normalized events into an `EventChannel` while accumulating the final
`TurnResponse`. Cancellation-shaped failures resolve the turn with
`finish_reason="abort"` and the partial text; any other failure emits a single
`error` event and rejects the response future.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger

from minicode.errors import MinicodeError
from minicode.runner.channel import EventChannel
from minicode.runner.errors import is_abort_error, serialize_error
from minicode.runner.events import map_stream_part
from minicode.runner.types import (
    EMPTY_USAGE,
    AbortEvent,
    ErrorEvent,
    FinishReason,
    Message,
    ModelStreamLike,
    StepResult,
    StreamPart,
    Turn,
    TurnEvent,
    TurnResponse,
    TurnUsage,
)

R = TypeVar("R")


class StreamConsumedError(MinicodeError, RuntimeError):
    """Raised when a model stream is iterated a second time."""


class ModelStreamError(MinicodeError):
    """Raised for an `error` part whose payload is not an exception."""


class ModelStream:
    """Single-consumption provider stream.

    Wraps an async iterable of raw parts. Step results, finish reason and total
    usage are derived from the `finish-step` / `finish` parts seen while the
    parts are iterated, and become available once iteration ends.
    """

    def __init__(self, parts: AsyncIterable[StreamPart]) -> None:
        self._source = parts
        self._consumed = False
        self._settled = asyncio.Event()
        self._error: BaseException | None = None
        self._steps: list[StepResult] = []
        self._finish_reason: FinishReason | None = None
        self._total_usage: TurnUsage | None = None
        self._aborted = False
        self._part_error: Any = None

    @property
    def consumed(self) -> bool:
        return self._consumed

    def parts(self) -> AsyncIterator[StreamPart]:
        if self._consumed:
            raise StreamConsumedError("model stream parts can only be iterated once")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamPart]:
        try:
            async for part in self._source:
                self._observe(part)
                yield part
        except GeneratorExit:
            raise
        except BaseException as error:
            self._error = error
            raise
        finally:
            self._settled.set()

    def _observe(self, part: StreamPart) -> None:
        if part.type == "finish-step":
            messages: list[Message] = list(part.output or []) if isinstance(part.output, list) else []
            self._steps.append(StepResult(response_messages=messages, finish_reason=part.finish_reason, usage=part.usage))
        elif part.type == "finish":
            self._finish_reason = part.finish_reason
            self._total_usage = part.usage
        elif part.type == "abort":
            self._aborted = True
        elif part.type == "error":
            self._part_error = part.error

    async def _outcome(self) -> None:
        await self._settled.wait()
        if self._error is not None:
            raise self._error
        if self._finish_reason is None and self._part_error is not None:
            if isinstance(self._part_error, BaseException):
                raise self._part_error
            raise ModelStreamError(serialize_error(self._part_error).message)

    async def steps(self) -> list[StepResult]:
        await self._outcome()
        return list(self._steps)

    async def finish_reason(self) -> FinishReason:
        await self._outcome()
        if self._finish_reason is not None:
            return self._finish_reason
        if self._aborted:
            return "abort"
        return self._steps[-1].finish_reason if self._steps else "unknown"

    async def total_usage(self) -> TurnUsage:
        await self._outcome()
        if self._total_usage is not None:
            return self._total_usage
        return _sum_step_usage(self._steps)


def _sum_step_usage(steps: list[StepResult]) -> TurnUsage:
    totals: dict[str, int] = {}
    for step in steps:
        if step.usage is None:
            continue
        for key, value in step.usage.model_dump(exclude_none=True).items():
            totals[key] = totals.get(key, 0) + value
    return TurnUsage(**totals) if totals else EMPTY_USAGE


@dataclass
class _AdapterState:
    text: str = ""
    emitted_error: bool = False
    emitted_abort: bool = False


def create_turn_from_stream(
    source: ModelStreamLike | Awaitable[ModelStreamLike],
    abort: Callable[[], None],
) -> Turn:
    """Adapt a model stream (or a pending model call) into a `Turn` handle.

    Must be called with a running event loop.
    """

    channel: EventChannel[TurnEvent] = EventChannel()
    response = asyncio.ensure_future(_consume(source, channel))
    return Turn(events=channel, response=response, abort=abort)


async def _consume(
    source: ModelStreamLike | Awaitable[ModelStreamLike],
    channel: EventChannel[TurnEvent],
) -> TurnResponse:
    state = _AdapterState()
    stream: ModelStreamLike | None = None
    try:
        stream = await source if inspect.isawaitable(source) else source
        async for part in stream.parts():
            if part.type == "text-delta":
                state.text += part.text

            event = map_stream_part(part)
            if event is None:
                continue
            if event.type == "error":
                state.emitted_error = True
            elif event.type == "abort":
                state.emitted_abort = True
            channel.push(event)

        steps = await stream.steps()
        return TurnResponse(
            text=state.text,
            response_messages=_flatten_messages(steps),
            finish_reason=await stream.finish_reason(),
            total_usage=await stream.total_usage(),
        )
    except asyncio.CancelledError as error:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            raise
        return await _abort_response(stream, state, channel, error)
    except Exception as error:
        if state.emitted_abort or is_abort_error(error):
            return await _abort_response(stream, state, channel, error)

        logger.opt(exception=error).error("turn.stream.error error={}", type(error).__name__)
        if not state.emitted_error:
            channel.push(ErrorEvent(error=serialize_error(error)))
        raise
    finally:
        channel.close()


async def _abort_response(
    stream: ModelStreamLike | None,
    state: _AdapterState,
    channel: EventChannel[TurnEvent],
    error: BaseException,
) -> TurnResponse:
    logger.info("turn.stream.abort reason={} partial_chars={}", type(error).__name__, len(state.text))
    if not state.emitted_abort:
        state.emitted_abort = True
        channel.push(AbortEvent())

    steps: list[StepResult] = []
    total_usage = EMPTY_USAGE
    if stream is not None:
        steps = await _settle(stream.steps, [])
        total_usage = await _settle(stream.total_usage, EMPTY_USAGE)
    return TurnResponse(
        text=state.text,
        response_messages=_flatten_messages(steps),
        finish_reason="abort",
        total_usage=total_usage,
    )


async def _settle(call: Callable[[], Awaitable[R]], fallback: R) -> R:
    try:
        return await call()
    except (Exception, asyncio.CancelledError):
        return fallback


def _flatten_messages(steps: list[StepResult]) -> list[Message]:
    return [dict(message) for step in steps for message in step.response_messages]
