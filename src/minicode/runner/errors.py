"""Error normalization for turn events."""

from __future__ import annotations

import asyncio

from minicode.errors import TurnAbortedError
from minicode.runner.types import SerializedError


def serialize_error(error: object) -> SerializedError:
    if isinstance(error, BaseException):
        return SerializedError(name=type(error).__name__ or "Error", message=str(error))
    if isinstance(error, str):
        return SerializedError(name="Error", message=error)
    return SerializedError(name="Error", message="Unknown error")


def is_abort_error(error: BaseException) -> bool:
    """Whether an error raised by a model stream means cancellation."""

    if isinstance(error, (TurnAbortedError, asyncio.CancelledError)):
        return True
    if type(error).__name__ == "AbortError":
        return True
    return "abort" in str(error).lower()
