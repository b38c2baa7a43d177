"""Asynchronous event channels between the content source and the core.

A channel is a queue drained by one consumer task. Every event is handed to
the handler in its own task, so a slow account never holds up another and no
ordering is promised across events. Handler failures stop at the task
boundary: they are logged and the event is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[T], Awaitable[None]]


class EventChannel(Generic[T]):
    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: asyncio.Queue[T] = asyncio.Queue()
        self._tasks: set[asyncio.Task[None]] = set()

    def publish(self, event: T) -> None:
        self._queue.put_nowait(event)

    async def consume(self, handler: Handler[T]) -> None:
        """Deliver events to ``handler`` until cancelled."""

        LOGGER.debug("Consuming channel %s", self.name)
        while True:
            event = await self._queue.get()
            task = asyncio.create_task(self._deliver(handler, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def join(self) -> None:
        """Wait until every published event has been handled."""

        await self._queue.join()

    async def _deliver(self, handler: Handler[T], event: T) -> None:
        try:
            await handler(event)
        except Exception:
            LOGGER.exception("Handler for channel %s failed", self.name)
        finally:
            self._queue.task_done()
