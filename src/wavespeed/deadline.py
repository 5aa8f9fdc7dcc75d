"""Call-wide deadline and cooperative cancellation.

One ``Deadline`` is created when a run starts. Connection-retry sleeps, poll
sleeps and task-retry back-off all draw from it, so the budget is never reset
by a sub-step.
"""

from __future__ import annotations

from collections.abc import Callable
import threading
import time


class Deadline:
    """Absolute deadline derived from an overall timeout, plus a cancel token."""

    __slots__ = ("_cancel", "_clock", "started", "timeout")

    def __init__(
        self,
        timeout: float,
        *,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._cancel = cancel_event or threading.Event()
        self.started = clock()

    def elapsed(self) -> float:
        return self._clock() - self.started

    def remaining(self) -> float:
        return max(0.0, self.timeout - self.elapsed())

    def expired(self) -> bool:
        return self.elapsed() >= self.timeout

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Wake any pending sleep and mark the run as cancelled."""
        self._cancel.set()

    def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return False if cancelled meanwhile."""
        if seconds <= 0:
            return not self.cancelled
        return not self._cancel.wait(seconds)
