"""
Host clock abstraction for delayed callbacks.

The engine never sleeps or spawns threads. Delays (auto-continue lines)
are registered against a Scheduler supplied by the host. TickScheduler is
the bundled implementation, advanced from the host's game loop:

    scheduler = TickScheduler()
    engine = DialogueEngine(graph, flags, scheduler)

    while running:
        dt = clock.tick()
        scheduler.update(dt)
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from itertools import count
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

# Cancelled entries tolerated in the heap before it is compacted
COMPACT_THRESHOLD = 32


@dataclass(eq=False)
class TimerHandle:
    """Cancellable reference to a scheduled callback."""
    due: float
    callback: Callable[[], None] = field(repr=False)
    cancelled: bool = False
    fired: bool = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class Scheduler(Protocol):
    """Clock interface consumed by the dialogue engine."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        ...

    def cancel(self, handle: TimerHandle) -> None:
        ...


class TickScheduler:
    """
    Scheduler driven by explicit update(dt) calls.

    Due callbacks run in due-time order (ties in scheduling order) from a
    loop, never recursively. A callback that schedules another zero-delay
    callback gets it run within the same update, up to
    max_callbacks_per_update; anything past that waits for the next update.
    """

    def __init__(self, max_callbacks_per_update: int = 64):
        if max_callbacks_per_update < 1:
            raise ValueError("max_callbacks_per_update must be at least 1")
        self.max_callbacks_per_update = max_callbacks_per_update
        self._now = 0.0
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._sequence = count()
        # Cancelled handles still sitting in _queue
        self._cancelled = 0

    @property
    def now(self) -> float:
        """Seconds elapsed since the scheduler was created."""
        return self._now

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, handle in self._queue if handle.pending)

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once delay_seconds of update() time has elapsed."""
        delay = max(0.0, float(delay_seconds))
        handle = TimerHandle(due=self._now + delay, callback=callback)
        heapq.heappush(self._queue, (handle.due, next(self._sequence), handle))
        return handle

    def cancel(self, handle: TimerHandle | None) -> None:
        """Cancel a pending callback. No-op for fired or cancelled handles."""
        if handle is not None and handle.pending:
            handle.cancelled = True
            self._cancelled += 1
            self._prune()

    def update(self, dt: float) -> int:
        """
        Advance the clock and run due callbacks.

        Returns:
            Number of callbacks run
        """
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        self._now += dt

        ran = 0
        while self._queue and ran < self.max_callbacks_per_update:
            due, _, handle = self._queue[0]
            if due > self._now:
                break
            heapq.heappop(self._queue)
            if not handle.pending:
                self._cancelled -= 1
                continue

            handle.fired = True
            ran += 1
            try:
                handle.callback()
            except Exception:
                logger.exception("Scheduled callback failed")

        if ran >= self.max_callbacks_per_update and self._has_due():
            logger.warning(
                "Scheduler hit %d callbacks in one update; deferring the rest",
                self.max_callbacks_per_update,
            )
        return ran

    def _prune(self) -> None:
        """Drop cancelled handles from the head, and compact when they dominate."""
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
            self._cancelled -= 1

        if self._cancelled > max(COMPACT_THRESHOLD, len(self._queue) // 2):
            self._queue = [entry for entry in self._queue if entry[2].pending]
            heapq.heapify(self._queue)
            self._cancelled = 0

    def _has_due(self) -> bool:
        return any(h.pending and due <= self._now for due, _, h in self._queue)

    def clear(self) -> None:
        """Cancel everything still pending."""
        for _, _, handle in self._queue:
            if handle.pending:
                handle.cancelled = True
        self._queue.clear()
        self._cancelled = 0
