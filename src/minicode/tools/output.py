"""Tool output contract and the tool boundary."""

from __future__ import annotations

import asyncio
import inspect
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any, TypeAlias

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ToolOutput(BaseModel):
    """Result of one tool call. Only `output_message` is shown to the model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    ok: bool
    output_message: str
    details: Any = None
    meta: dict[str, Any] | None = None


class ToolInput(BaseModel):
    """Base for tool input models; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def success(output_message: str, details: Any = None, meta: dict[str, Any] | None = None) -> ToolOutput:
    return ToolOutput(ok=True, output_message=output_message, details=details, meta=meta)


def failure(output_message: str, details: Any = None, meta: dict[str, Any] | None = None) -> ToolOutput:
    return ToolOutput(ok=False, output_message=output_message, details=details, meta=meta)


@dataclass(frozen=True)
class ToolCallContext:
    """Per-call context handed to tool handlers."""

    tool_call_id: str = ""
    session_id: str | None = None
    abort_signal: asyncio.Event | None = None


ToolHandler: TypeAlias = Callable[[Any, ToolCallContext], Awaitable[ToolOutput] | ToolOutput]


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text
    available = width - len(placeholder)
    if available <= 0:
        return placeholder
    return text[:available] + placeholder


@dataclass(frozen=True)
class Tool:
    """A named tool: pydantic input model plus an async handler."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler
    context: ToolCallContext = field(default_factory=ToolCallContext)

    def bind(self, *, session_id: str | None = None, abort_signal: asyncio.Event | None = None) -> Tool:
        """Copy of this tool whose calls default to the given session and abort signal."""

        return replace(self, context=replace(self.context, session_id=session_id, abort_signal=abort_signal))

    def schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.input_model.model_json_schema(),
        }

    async def execute(self, raw_input: Any, context: ToolCallContext | None = None) -> ToolOutput:
        """Run the tool; any exception becomes a failed `ToolOutput`."""

        call_context = context or self.context
        self._log_call(raw_input, call_context)
        start = time.monotonic()
        try:
            params = self.input_model.model_validate(raw_input if raw_input is not None else {})
            result = self.handler(params, call_context)
            if inspect.isawaitable(result):
                result = await result
            return ToolOutput.model_validate(result)
        except Exception as exc:
            logger.opt(exception=exc).warning("tool.call.error name={}", self.name)
            return failure(f"Tool execution failed: {exc}")
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", self.name, duration * 1000)

    def _log_call(self, raw_input: Any, context: ToolCallContext) -> None:
        params: list[str] = []
        if isinstance(raw_input, dict):
            for key, value in raw_input.items():
                try:
                    rendered = json.dumps(value, ensure_ascii=False)
                except TypeError:
                    rendered = repr(value)
                params.append(f"{key}={_shorten_text(rendered)}")
        logger.info(
            "tool.call.start name={} call_id={} session={} {{ {} }}",
            self.name,
            context.tool_call_id or "-",
            context.session_id or "-",
            ", ".join(params),
        )


def to_model_text(output: ToolOutput) -> str:
    """Model-facing rendering of a tool result; details and meta stay host-side."""

    return output.output_message


def define_tool(
    name: str,
    *,
    description: str,
    input_model: type[BaseModel],
    handler: ToolHandler,
) -> Tool:
    return Tool(name=name, description=description, input_model=input_model, handler=handler)
