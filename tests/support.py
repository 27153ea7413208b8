"""Scripted models and stream helpers shared by the tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any

from minicode.runner.stream import ModelStream
from minicode.runner.types import Message, StreamPart, TurnUsage


def reply_parts(text: str, *, usage: TurnUsage | None = None) -> list[StreamPart]:
    """Parts of a single-step assistant reply."""

    usage = usage or TurnUsage(input_tokens=1, output_tokens=1, total_tokens=2)
    return [
        StreamPart(type="start"),
        StreamPart(type="text-delta", text=text),
        StreamPart(
            type="finish-step",
            finish_reason="stop",
            usage=usage,
            output=[{"role": "assistant", "content": text}],
        ),
        StreamPart(type="finish", finish_reason="stop", usage=usage),
    ]


async def replay(parts: list[StreamPart]) -> AsyncIterator[StreamPart]:
    for part in parts:
        await asyncio.sleep(0)
        yield part


class ScriptedModel:
    """Language model that replays one scripted part list per call."""

    def __init__(
        self,
        *scripts: list[StreamPart] | Callable[[asyncio.Event], AsyncIterator[StreamPart]],
        provider: str = "test",
        model_id: str = "scripted-1",
    ) -> None:
        self.provider = provider
        self.model_id = model_id
        self._scripts = list(scripts)
        self.calls: list[dict[str, Any]] = []

    def stream(
        self,
        *,
        messages: list[Message],
        tools: Mapping[str, Any],
        instructions: str | None,
        abort_signal: asyncio.Event,
    ) -> ModelStream:
        self.calls.append(
            {
                "messages": messages,
                "tools": dict(tools),
                "instructions": instructions,
                "abort_signal": abort_signal,
            }
        )
        script = self._scripts.pop(0)
        if callable(script):
            return ModelStream(script(abort_signal))
        return ModelStream(replay(script))
