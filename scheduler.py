"""
scheduler.py

Single-timer delayed execution plus the wall-clock catch-up math.

Only one natural-advance timer is ever pending: arming a new one cancels
the previous handle first.  Cancelling is best effort; a timer that already
started running its callback is simply marked stale and the engine ignores
its tick.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Optional

log = logging.getLogger(__name__)


# ── catch-up ───────────────────────────────────────────────────────────────
def compute_catch_up_delay(last_advance: float,
                           interval_seconds: float,
                           now: float) -> tuple[float, int]:
    """
    Return ``(delay, steps)`` for an item shown at *last_advance*.

    ``steps`` is the number of whole intervals elapsed since then and
    ``delay`` the time left until the next interval boundary::

        now - last_advance = k * interval + r   →   (interval - r, k)

    An interval ≤ 0 is treated as 1 s.  A clock that went backwards counts
    as no time elapsed.
    """
    interval = interval_seconds if interval_seconds > 0 else 1
    elapsed = max(0.0, now - last_advance)
    steps = int(math.floor(elapsed / interval))
    remainder = elapsed - steps * interval
    return interval - remainder, steps


# ── timer handle ───────────────────────────────────────────────────────────
class TimerHandle:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False
        self._timer = None

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if self.pending:
            self.cancelled = True
            if self._timer is not None:
                self._timer.cancel()

    def __repr__(self) -> str:
        state = "pending" if self.pending else ("fired" if self.fired else "cancelled")
        return f"<TimerHandle {self.delay:.3f}s {state}>"


# ── scheduler ──────────────────────────────────────────────────────────────
class Scheduler:
    """Owns the one timer used for natural advancement."""

    def __init__(self,
                 timer_factory: Callable[..., object] = threading.Timer,
                 clock: Callable[[], float] = time.time) -> None:
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Optional[TimerHandle] = None

    def now(self) -> float:
        return self._clock()

    @property
    def pending(self) -> Optional[TimerHandle]:
        with self._lock:
            return self._pending

    def schedule_after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        delay = max(0.0, float(delay))
        handle = TimerHandle(delay, callback)
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            timer = self._timer_factory(delay, self._fire, args=(handle,))
            timer.daemon = True
            handle._timer = timer
            self._pending = handle
        timer.start()
        log.debug("[scheduler] armed %r", handle)
        return handle

    def cancel(self, handle: Optional[TimerHandle] = None) -> None:
        """Cancel *handle*, or whatever is pending when it is None."""
        with self._lock:
            target = handle or self._pending
            if target is None:
                return
            target.cancel()
            if target is self._pending:
                self._pending = None

    # ── internals ──────────────────────────────────────────────────────────
    def _fire(self, handle: TimerHandle) -> None:
        with self._lock:
            if not handle.pending:
                return
            handle.fired = True
            if handle is self._pending:
                self._pending = None
        handle.callback()
