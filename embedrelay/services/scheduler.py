"""Timer scheduling for the single-threaded session model.

Every wait in the relay (load timeouts, retry backoff, watch-time ticks,
block cooldowns, behaviour events) is a callback scheduled for later, never a
suspended coroutine. ``LoopScheduler`` schedules on an asyncio event loop;
``ManualScheduler`` keeps a virtual clock that only moves when ``advance``
is called, which makes timer-driven behaviour deterministic.

``ManualScheduler`` and its ``ManualTimer`` handles are a public utility
rather than production wiring: the application always runs on
``LoopScheduler``, while test suites and offline simulations of session
lifecycles (replaying hours of ticks, retries and block cooldowns in
milliseconds) build an orchestrator on ``ManualScheduler`` instead.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus one-shot timers. ``time()`` is in seconds."""

    def time(self) -> float: ...

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle: ...


class LoopScheduler:
    """Scheduler backed by an asyncio event loop (``loop.time`` / ``loop.call_later``)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def time(self) -> float:
        return self._loop.time()

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        return self._loop.call_later(max(0.0, delay), callback, *args)


class ManualTimer:
    """Handle returned by :class:`ManualScheduler`."""

    __slots__ = ("when", "callback", "args", "cancelled")

    def __init__(self, when: float, callback: Callable[..., Any], args: tuple) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler.

    Timers fire in deadline order (FIFO for equal deadlines) only while
    :meth:`advance` or :meth:`run_pending` is running. Like the asyncio loop,
    an exception raised by a callback is logged and does not stop the others.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, ManualTimer]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self._now

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> ManualTimer:
        timer = ManualTimer(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (timer.when, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of scheduled timers that have not been cancelled."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every timer that falls due.

        Returns the number of callbacks that ran.
        """
        target = self._now + max(0.0, seconds)
        fired = self._run_until(target)
        self._now = target
        return fired

    def run_pending(self) -> int:
        """Fire timers already due at the current time."""
        return self._run_until(self._now)

    def _run_until(self, target: float) -> int:
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = when
            fired += 1
            try:
                timer.callback(*timer.args)
            except Exception:
                logger.exception("Scheduled callback %r raised", timer.callback)
        return fired
