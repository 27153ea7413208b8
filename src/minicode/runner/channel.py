"""Push-to-pull event channel used to stream turn events."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_DONE = object()


class EventChannel(Generic[T]):
    """Single-producer channel drained by one logical async reader.

    `push` hands values straight to a waiting reader or buffers them. Buffered
    values are always delivered before end-of-sequence or a failure is seen.
    """

    def __init__(self) -> None:
        self._values: deque[T] = deque()
        self._waiters: deque[asyncio.Future[Any]] = deque()
        self._closed = False
        self._failure: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        if self._closed or self._failure is not None:
            return

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(value)
                return
        self._values.append(value)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(_DONE)

    def fail(self, error: BaseException) -> None:
        if self._closed or self._failure is not None:
            return
        self._failure = error
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(error)

    def __aiter__(self) -> EventChannel[T]:
        return self

    async def __anext__(self) -> T:
        if self._values:
            return self._values.popleft()
        if self._closed:
            raise StopAsyncIteration
        if self._failure is not None:
            raise self._failure

        waiter: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        value = await waiter
        if value is _DONE:
            raise StopAsyncIteration
        return value  # type: ignore[no-any-return]

    async def aclose(self) -> None:
        """Stop reading early; later pushes are dropped."""

        self.close()
