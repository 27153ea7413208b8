"""FIFO task queue that serializes asynchronous commits."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

R = TypeVar("R")


class SerialTaskQueue:
    """Runs submitted tasks one at a time, strictly in submission order.

    A worker task is started on demand and exits once the queue is drained.
    A failing task rejects only its own caller; later tasks still run.
    """

    def __init__(self, name: str = "commit") -> None:
        self.name = name
        self._pending: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future[Any]]] = deque()
        self._worker: asyncio.Task[None] | None = None

    @property
    def idle(self) -> bool:
        return not self._pending and (self._worker is None or self._worker.done())

    async def submit(self, task: Callable[[], Awaitable[R]]) -> R:
        future: asyncio.Future[R] = asyncio.get_running_loop().create_future()
        self._pending.append((task, future))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        while self._pending:
            task, future = self._pending.popleft()
            if future.cancelled():
                continue
            try:
                result = await task()
            except asyncio.CancelledError:
                future.cancel()
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    self._cancel_pending()
                    raise
                logger.warning("queue.task.cancelled queue={}", self.name)
                continue
            except Exception as exc:
                logger.opt(exception=exc).warning("queue.task.failed queue={}", self.name)
                if not future.cancelled():
                    future.set_exception(exc)
                continue
            except BaseException:
                future.cancel()
                self._cancel_pending()
                raise
            if not future.cancelled():
                future.set_result(result)

    def _cancel_pending(self) -> None:
        # The worker is going away; nothing left in the queue would ever run.
        while self._pending:
            _, future = self._pending.popleft()
            future.cancel()
