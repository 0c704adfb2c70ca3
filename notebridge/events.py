"""
Ordered, serialized delivery of consumer events.

Producers call ``publish`` synchronously from any coroutine or loop callback
on the bridge's event loop. A single dispatcher task drains the queue and
invokes subscribers one event at a time, so handlers never run concurrently
and always observe events in publication order.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from typing import Any, Callable, Optional

from notebridge.logger import get_logger

_LOGGER = get_logger()

Handler = Callable[[Any], Any]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[type, list[Handler]] = {}
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._dispatcher: Optional[asyncio.Task[None]] = None
        self._closed = False

    def subscribe(self, event_type: type, handler: Handler) -> Callable[[], None]:
        handlers = self._subscribers.setdefault(event_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: Any) -> None:
        if self._closed:
            _LOGGER.debug("Dropping {} published after close", type(event).__name__)
            return
        self._queue.put_nowait(event)

    def start(self) -> None:
        if self._dispatcher is not None and not self._dispatcher.done():
            return
        self._closed = False
        self._dispatcher = asyncio.get_running_loop().create_task(
            self._dispatch_loop(), name="notebridge_events"
        )

    async def drain(self) -> None:
        """Wait until every event published so far has been delivered."""
        await self._queue.join()

    async def close(self, timeout: float = 1.0) -> None:
        self._closed = True
        dispatcher = self._dispatcher
        self._dispatcher = None
        if dispatcher is None:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._queue.join(), timeout)
        dispatcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await dispatcher

    async def _dispatch_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: Any) -> None:
        for handler in list(self._subscribers.get(type(event), ())):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # A failing consumer must not stall delivery to the others.
                _LOGGER.exception("Event handler failed for {}", type(event).__name__)
