"""
Work queue for reconcile keys.

Mirrors the semantics of the platform work queues controllers are usually
driven by:

- A key waiting in the queue is stored once, however often it is added.
- A key handed to a worker is never handed to a second worker until the
  first calls done(key).
- A key added while it is being processed is queued again on done(key).
- add_after(key, delay) schedules a delayed add; a newer timer for the same
  key replaces the older one.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    asyncio work queue of object names.

    Example:
        queue = WorkQueue()
        queue.add("cache")
        name = await queue.get()
        try:
            ...
        finally:
            queue.done(name)
    """

    def __init__(self) -> None:
        self._ready: asyncio.Queue[str | None] = asyncio.Queue()
        self._dirty: set[str] = set()
        self._processing: set[str] = set()
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._dirty - self._processing)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, key: str) -> None:
        """Queue a key unless it is already waiting."""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._ready.put_nowait(key)

    def add_after(self, key: str, delay: float) -> None:
        """Queue a key once `delay` seconds have passed."""
        if self._shutting_down:
            return
        self._cancel_timer(key)
        if delay <= 0:
            self.add(key)
            return
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key)

    def pending_timer(self, key: str) -> bool:
        return key in self._timers

    def tracked(self, key: str) -> bool:
        """Whether the key is waiting, being processed or scheduled."""
        return key in self._dirty or key in self._processing or key in self._timers

    async def get(self) -> str | None:
        """
        Wait for the next key.

        Returns:
            The key, now marked as processing. None once the queue is
            shut down.
        """
        key = await self._ready.get()
        if key is None or self._shutting_down:
            # Wake the next waiter too
            self._ready.put_nowait(None)
            return None
        self._dirty.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: str) -> None:
        """Mark a key as processed, re-queueing it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._ready.put_nowait(key)

    def shutdown(self) -> None:
        """Cancel timers and release every worker blocked in get()."""
        if self._shutting_down:
            return
        self._shutting_down = True
        for key in list(self._timers):
            self._cancel_timer(key)
        self._ready.put_nowait(None)

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def _cancel_timer(self, key: str) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
