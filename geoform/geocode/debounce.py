"""Per-key debounce timers on top of the running asyncio loop."""
from __future__ import annotations

import asyncio
import inspect
from typing import Callable, Dict, Hashable, Optional, Set

import structlog

from geoform.observability.metrics import MetricsRegistry

LOGGER = structlog.get_logger(__name__)


class DebounceScheduler:
    """Coalesces bursts of calls into one invocation per key.

    Each key owns at most one ``asyncio.TimerHandle``. Scheduling a key that
    is still pending cancels the old handle before storing the new one, so
    only the last call of a burst fires. When ``fn`` returns an awaitable
    the scheduler runs it as a task and keeps a reference until it finishes.
    """

    def __init__(self, *, metrics: Optional[MetricsRegistry] = None) -> None:
        self._handles: Dict[Hashable, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._metrics = metrics

    def schedule(self, key: Hashable, fn: Callable[[], object], delay_ms: int) -> asyncio.TimerHandle:
        """Run ``fn`` after ``delay_ms`` unless ``key`` is rescheduled first."""
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        loop = asyncio.get_running_loop()
        if self.cancel(key) and self._metrics is not None:
            self._metrics.incr("debounce_replacements")
        handle = loop.call_later(delay_ms / 1000, self._fire, key, fn)
        self._handles[key] = handle
        return handle

    def cancel(self, key: Hashable) -> bool:
        """Drop the pending invocation for ``key``; return True if one existed."""
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)

    def pending(self, key: Hashable) -> bool:
        return key in self._handles

    def handle(self, key: Hashable) -> Optional[asyncio.TimerHandle]:
        return self._handles.get(key)

    @property
    def in_flight(self) -> int:
        """Number of fired invocations whose awaitable has not finished."""
        return len(self._tasks)

    def _fire(self, key: Hashable, fn: Callable[[], object]) -> None:
        self._handles.pop(key, None)
        result = fn()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every fired invocation that is still running."""
        while self._tasks:
            results = await asyncio.gather(*list(self._tasks), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    LOGGER.error("debounced_call_failed", error=repr(result))

    async def settle(self) -> None:
        """Wait until no timer is pending and no fired invocation is running."""
        loop = asyncio.get_running_loop()
        while self._handles or self._tasks:
            if self._handles:
                soonest = min(handle.when() for handle in self._handles.values())
                await asyncio.sleep(max(0.0, soonest - loop.time()))
                continue
            await self.drain()
