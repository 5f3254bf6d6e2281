"""
compound_manager/engine/scheduling.py - Debounced task scheduling.

A Debouncer keeps one pending slot per trigger key. Every request for a key
resets that key's timer; when the key has been quiet for the configured
interval the latest request runs once, on the event loop. A run for a key
waits for a still-running invocation of the same key, so two runs for one
trigger never overlap. Different keys are independent.

There is no cancellation of a run that has started; cancel_all() only drops
pending (not yet started) requests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Hashable

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[object]]


class Debouncer:
    def __init__(self, delay_ms: int) -> None:
        self.delay = max(delay_ms, 0) / 1000.0
        self._pending: dict[Hashable, asyncio.TimerHandle] = {}
        self._running: dict[Hashable, asyncio.Task] = {}

    def schedule(self, key: Hashable, factory: TaskFactory) -> bool:
        """
        Request a trailing invocation of factory() for key.

        Returns:
            True if the request was queued. False when there is no running
            event loop to schedule on (synchronous callers); nothing is queued.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; debounced call for %r skipped.", key)
            return False

        handle = self._pending.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._pending[key] = loop.call_later(self.delay, self._fire, key, factory)
        return True

    def _fire(self, key: Hashable, factory: TaskFactory) -> None:
        self._pending.pop(key, None)
        previous = self._running.get(key)
        task = asyncio.get_running_loop().create_task(self._run(factory, previous))
        self._running[key] = task
        task.add_done_callback(lambda t: self._finished(key, t))

    @staticmethod
    async def _run(factory: TaskFactory, previous: asyncio.Task | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        await factory()

    def _finished(self, key: Hashable, task: asyncio.Task) -> None:
        if self._running.get(key) is task:
            del self._running[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Debounced call for %r failed.", key, exc_info=task.exception()
            )

    def pending_keys(self) -> set[Hashable]:
        return set(self._pending)

    def is_idle(self) -> bool:
        return not self._pending and not self._running

    async def drain(self) -> None:
        """Wait until every pending and running invocation has finished."""
        while not self.is_idle():
            if self._running:
                await asyncio.wait(list(self._running.values()))
            else:
                await asyncio.sleep(self.delay / 2)

    def cancel_all(self) -> int:
        """Drop every pending request. Returns how many were dropped."""
        dropped = len(self._pending)
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        return dropped
