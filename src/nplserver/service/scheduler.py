"""Per-key debouncing of delayed actions on a single background thread."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger("nplserver.scheduler")


class SchedulerShutdownError(RuntimeError):
    """Raised when work is scheduled after :meth:`DebounceScheduler.shutdown`."""


@dataclass(eq=False)
class _Task:
    key: str
    action: Callable[[], object]
    due: float  # monotonic clock
    cancelled: bool = field(default=False)


class DebounceScheduler:
    """Coalesces bursts of actions per key into one delayed run.

    At most one action per key is pending; scheduling again for the key
    cancels the pending one.  Cancellation is best effort: an action that has
    already started runs to completion.  Actions run one at a time on a
    daemon thread that is started on first use.
    """

    def __init__(self, delay: float = 0.3) -> None:
        self._delay = delay
        self._lock = threading.Lock()
        self._wakeup = threading.Condition(self._lock)
        self._pending: dict[str, _Task] = {}
        self._queue: list[tuple[float, int, _Task]] = []
        self._counter = itertools.count()
        self._shutdown = False
        self._thread: threading.Thread | None = None

    # -- public API ----------------------------------------------------------

    def schedule(
        self, key: str, action: Callable[[], object], delay: float | None = None
    ) -> None:
        """Run *action* after *delay* seconds unless superseded for *key*."""
        due = time.monotonic() + (self._delay if delay is None else delay)
        with self._wakeup:
            if self._shutdown:
                raise SchedulerShutdownError("Scheduler has been shut down")
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous.cancelled = True
            task = _Task(key=key, action=action, due=due)
            self._pending[key] = task
            heapq.heappush(self._queue, (task.due, next(self._counter), task))
            self._ensure_thread()
            self._wakeup.notify()

    def shutdown(self) -> None:
        """Stop accepting work and drop pending actions without waiting."""
        with self._wakeup:
            self._shutdown = True
            for task in self._pending.values():
                task.cancelled = True
            self._pending.clear()
            self._queue.clear()
            self._wakeup.notify_all()

    @property
    def pending(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pending)

    @property
    def is_shutdown(self) -> bool:
        with self._lock:
            return self._shutdown

    # -- internal ------------------------------------------------------------

    def _ensure_thread(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, daemon=True, name="debounce-scheduler")
        self._thread.start()

    def _next_task(self) -> _Task | None:
        """Block until a task is due; ``None`` once shut down."""
        with self._wakeup:
            while True:
                if self._shutdown:
                    return None
                while self._queue and self._queue[0][2].cancelled:
                    heapq.heappop(self._queue)
                if not self._queue:
                    self._wakeup.wait()
                    continue
                due, _, task = self._queue[0]
                remaining = due - time.monotonic()
                if remaining > 0:
                    self._wakeup.wait(timeout=remaining)
                    continue
                heapq.heappop(self._queue)
                # Entry is gone before the action runs: a schedule() for the
                # same key from here on starts a new pending task.
                if self._pending.get(task.key) is task:
                    del self._pending[task.key]
                return task

    def _run(self) -> None:
        while (task := self._next_task()) is not None:
            try:
                task.action()
            except Exception:
                logger.exception("Scheduled action for '%s' failed", task.key)
