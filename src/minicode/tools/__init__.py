"""Tool contract, builtin tools and output truncation."""

from minicode.tools.builtin import BUILTIN_TOOL_NAMES, create_builtin_tools
from minicode.tools.output import (
    Tool,
    ToolCallContext,
    ToolInput,
    ToolOutput,
    define_tool,
    failure,
    success,
    to_model_text,
)
from minicode.tools.truncation import OffloadedText, TruncatedText, truncate_by_bytes, truncate_with_artifact

__all__ = [
    "BUILTIN_TOOL_NAMES",
    "OffloadedText",
    "Tool",
    "ToolCallContext",
    "ToolInput",
    "ToolOutput",
    "TruncatedText",
    "create_builtin_tools",
    "define_tool",
    "failure",
    "success",
    "to_model_text",
    "truncate_by_bytes",
    "truncate_with_artifact",
]
