"""Request deduplicator — collapses identical in-flight generation requests onto one task."""

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, TypeVar

from app.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Entry:
    task: asyncio.Task
    expires_at: float
    waiters: int = 0


class RequestDeduplicator:
    """Shares one task per key for ``ttl_seconds`` after the first request.

    Failed or cancelled tasks are evicted so the next caller retries. The
    underlying task is cancelled only when every waiter has gone away.
    """

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self._ttl = settings.package_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            self._purge()
            entry = self._entries.get(key)
            if entry is None:
                task = asyncio.create_task(factory())
                entry = _Entry(task=task, expires_at=self._clock() + self._ttl)
                self._entries[key] = entry
                task.add_done_callback(partial(self._on_done, key))
            else:
                logger.info(f"Dedup hit for {key[:12]}")
            entry.waiters += 1

        try:
            return await asyncio.shield(entry.task)
        finally:
            entry.waiters -= 1
            if entry.waiters == 0 and not entry.task.done():
                entry.task.cancel()
                self._evict(key, entry)

    def _purge(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if e.expires_at <= now]:
            del self._entries[key]

    def _evict(self, key: str, entry: _Entry) -> None:
        if self._entries.get(key) is entry:
            del self._entries[key]

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        if task.cancelled():
            failed = True
        else:
            failed = task.exception() is not None
        if failed:
            entry = self._entries.get(key)
            if entry is not None and entry.task is task:
                logger.warning(f"Evicting failed generation {key[:12]}")
                del self._entries[key]
