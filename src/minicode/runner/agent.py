"""Agent facade: builds model-ready transcripts and starts turns."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from minicode.runner.stream import create_turn_from_stream
from minicode.runner.types import LanguageModel, Message, Turn, TurnRequest


def build_messages(request: TurnRequest, transcript: Sequence[Message] = ()) -> list[Message]:
    """Prior transcript followed by the request's own messages."""

    return [dict(message) for message in transcript] + request.request_messages()


class Agent:
    """Runs turns against one model with a fixed tool set and instructions."""

    def __init__(
        self,
        *,
        model: LanguageModel,
        tools: Mapping[str, Any] | None = None,
        instructions: str | None = None,
    ) -> None:
        self.model = model
        self.tools: Mapping[str, Any] = dict(tools or {})
        self.instructions = instructions

    def run_turn(self, request: TurnRequest, transcript: Sequence[Message] = ()) -> Turn:
        """Start one turn. Raises `TurnRequestError` before calling the model."""

        messages = build_messages(request, transcript)
        abort_signal = request.abort_signal or asyncio.Event()
        settled = False

        def abort() -> None:
            if settled or abort_signal.is_set():
                return
            logger.info("turn.abort.requested model={}", self.model.model_id)
            abort_signal.set()

        logger.info(
            "turn.start provider={} model={} messages={}",
            self.model.provider,
            self.model.model_id,
            len(messages),
        )
        pending = self._open_stream(messages, abort_signal)
        turn = create_turn_from_stream(pending, abort)

        def _mark_settled(_: asyncio.Future[Any]) -> None:
            nonlocal settled
            settled = True

        turn.response.add_done_callback(_mark_settled)
        return turn

    async def _open_stream(self, messages: list[Message], abort_signal: asyncio.Event) -> Any:
        result = self.model.stream(
            messages=messages,
            tools=self.tools,
            instructions=self.instructions,
            abort_signal=abort_signal,
        )
        if inspect.isawaitable(result):
            return await result
        return result
