"""Event dispatcher — the single logical worker for inbound events.

Producers (HTTP callbacks) enqueue events; one worker loop pulls them off a
bounded queue and awaits the handler for each before taking the next, so
events are handled strictly in arrival order. A payment's finality event is
therefore never handled ahead of the incoming event submitted before it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from username_attestor.notifications.events import RawEvent

logger = logging.getLogger(__name__)

_INPUT_BUFFER = 1000


class EventDispatcher:
    """Asyncio queue worker dispatching events to a handler, one at a time.

    Usage::

        dispatcher = EventDispatcher(controller.handle_event)
        await dispatcher.start()
        await dispatcher.submit(TextEvent(requester_id="...", text="hi"))
        await dispatcher.stop()
    """

    def __init__(
        self,
        handler: Callable[[RawEvent], Awaitable[None]],
        *,
        buffer: int = _INPUT_BUFFER,
    ) -> None:
        self._handler = handler
        self._input: asyncio.Queue[RawEvent] = asyncio.Queue(maxsize=buffer)
        self._task: asyncio.Task[None] | None = None
        self._current: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def submit(self, event: RawEvent) -> None:
        """Enqueue *event*; waits for room when the queue is full."""
        await self._input.put(event)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Stop taking events and let the one being handled finish."""
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._current is not None and not self._current.done():
            await asyncio.gather(self._current, return_exceptions=True)
        self._current = None

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._input.join()

    async def _loop(self) -> None:
        while self._running:
            event = await self._input.get()
            self._current = asyncio.create_task(self._run(event))
            # Shielded so stop() cancelling the loop lets the handler finish.
            await asyncio.shield(self._current)

    async def _run(self, event: RawEvent) -> None:
        try:
            await self._handler(event)
        except Exception:
            logger.exception("Handling %s event failed", event.type)
        finally:
            self._input.task_done()
