"""Keyed mutex — per-key FIFO mutual exclusion on the asyncio loop.

At most one holder per exact key string; other callers with the same key
wait in arrival order; callers with different keys never block each other.
Entries for keys nobody holds or waits on are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

IDENTIFIER_PREFIX = "identifier:"
REQUESTER_PREFIX = "requester:"
TX_PREFIX = "tx:"


def identifier_key(identifier: str) -> str:
    return IDENTIFIER_PREFIX + identifier


def requester_key(requester_id: str) -> str:
    return REQUESTER_PREFIX + requester_id


def tx_key(payment_tx_id: str) -> str:
    return TX_PREFIX + payment_tx_id


@dataclass
class _Slot:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedMutex:
    """Map from key to a FIFO lock.

    Usage::

        locks = KeyedMutex("identifier")
        async with locks.lock(identifier_key("bob")):
            ...
        result = await locks.with_lock(identifier_key("bob"), decide_and_write)
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._slots: dict[str, _Slot] = {}

    @property
    def name(self) -> str:
        return self._name

    def is_locked(self, key: str) -> bool:
        """Whether some caller currently holds *key*."""
        slot = self._slots.get(key)
        return slot is not None and slot.lock.locked()

    def __len__(self) -> int:
        return len(self._slots)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """Hold *key* for the duration of the ``async with`` block."""
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.users += 1
        try:
            async with slot.lock:
                logger.debug("%s lock acquired: %s", self._name, key)
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                del self._slots[key]
            logger.debug("%s lock released: %s", self._name, key)

    async def with_lock(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``await fn()`` while holding *key* and return its result."""
        async with self.lock(key):
            return await fn()
