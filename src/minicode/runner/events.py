"""Mapping from raw provider stream parts to turn events."""

from __future__ import annotations

from minicode.runner.errors import serialize_error
from minicode.runner.types import (
    EMPTY_USAGE,
    AbortEvent,
    ErrorEvent,
    FinishEvent,
    ReasoningDeltaEvent,
    StepFinishEvent,
    StreamPart,
    TextDeltaEvent,
    ToolCallEvent,
    ToolErrorEvent,
    ToolResultEvent,
    TurnEvent,
)


def map_stream_part(part: StreamPart) -> TurnEvent | None:
    """Translate one raw part; parts with no turn-level meaning map to None."""

    match part.type:
        case "text-delta":
            return TextDeltaEvent(text=part.text)
        case "reasoning-delta":
            return ReasoningDeltaEvent(text=part.text)
        case "tool-call":
            return ToolCallEvent(
                tool_call_id=part.tool_call_id,
                tool_name=part.tool_name,
                input=part.input,
                provider_executed=part.provider_executed,
            )
        case "tool-result":
            return ToolResultEvent(
                tool_call_id=part.tool_call_id,
                tool_name=part.tool_name,
                input=part.input,
                output=part.output,
                provider_executed=part.provider_executed,
            )
        case "tool-error":
            return ToolErrorEvent(
                tool_call_id=part.tool_call_id,
                tool_name=part.tool_name,
                input=part.input,
                error=serialize_error(part.error),
                provider_executed=part.provider_executed,
            )
        case "finish-step":
            return StepFinishEvent(finish_reason=part.finish_reason, usage=part.usage or EMPTY_USAGE)
        case "finish":
            return FinishEvent(finish_reason=part.finish_reason, total_usage=part.usage or EMPTY_USAGE)
        case "abort":
            return AbortEvent()
        case "error":
            return ErrorEvent(error=serialize_error(part.error))
        case _:
            return None
