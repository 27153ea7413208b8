"""Turn execution: agent facade, stream adapter and event types."""

from minicode.runner.agent import Agent, build_messages
from minicode.runner.channel import EventChannel
from minicode.runner.events import map_stream_part
from minicode.runner.stream import ModelStream, StreamConsumedError, create_turn_from_stream
from minicode.runner.types import (
    EMPTY_USAGE,
    LanguageModel,
    Message,
    SerializedError,
    StepResult,
    StreamPart,
    Turn,
    TurnEvent,
    TurnRequest,
    TurnResponse,
    TurnUsage,
)

__all__ = [
    "EMPTY_USAGE",
    "Agent",
    "EventChannel",
    "LanguageModel",
    "Message",
    "ModelStream",
    "SerializedError",
    "StepResult",
    "StreamConsumedError",
    "StreamPart",
    "Turn",
    "TurnEvent",
    "TurnRequest",
    "TurnResponse",
    "TurnUsage",
    "build_messages",
    "create_turn_from_stream",
    "map_stream_part",
]
