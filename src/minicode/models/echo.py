"""Offline echo model used by the CLI and tests."""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Mapping
from typing import Any

from minicode.errors import TurnAbortedError
from minicode.hookspecs import hookimpl
from minicode.runner.stream import ModelStream
from minicode.runner.types import Message, StreamPart, TurnUsage

ECHO_PROVIDER = "echo"
TOKEN_RE = re.compile(r"\S+\s*")


def last_user_text(messages: list[Message]) -> str:
    for message in reversed(messages):
        if message.get("role") != "user":
            continue
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(str(part.get("text", "")) for part in content if isinstance(part, dict))
    return ""


class EchoModel:
    """Streams the latest user message back, one word per text delta."""

    def __init__(self, model_id: str = "echo-1", *, delay_seconds: float = 0.0) -> None:
        self.provider = ECHO_PROVIDER
        self.model_id = model_id
        self.delay_seconds = delay_seconds

    def stream(
        self,
        *,
        messages: list[Message],
        tools: Mapping[str, Any],
        instructions: str | None,
        abort_signal: asyncio.Event,
    ) -> ModelStream:
        _ = tools, instructions
        text = last_user_text(messages)
        return ModelStream(self._parts(text, len(messages), abort_signal))

    async def _parts(self, text: str, message_count: int, abort_signal: asyncio.Event) -> AsyncIterator[StreamPart]:
        if abort_signal.is_set():
            raise TurnAbortedError("turn aborted before model call")
        yield StreamPart(type="start")

        tokens = TOKEN_RE.findall(text) or [text]
        for token in tokens:
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            if abort_signal.is_set():
                raise TurnAbortedError("turn aborted by caller")
            yield StreamPart(type="text-delta", text=token)

        usage = TurnUsage(input_tokens=message_count, output_tokens=len(tokens), total_tokens=message_count + len(tokens))
        yield StreamPart(
            type="finish-step",
            finish_reason="stop",
            usage=usage,
            output=[{"role": "assistant", "content": text}],
        )
        yield StreamPart(type="finish", finish_reason="stop", usage=usage)


class EchoProvider:
    """Host hook implementation that serves the `echo` provider."""

    @hookimpl
    def provide_model(self, provider: str, model: str, settings: Any) -> EchoModel | None:
        _ = settings
        if provider != ECHO_PROVIDER:
            return None
        return EchoModel(model)
