"""Cancelable one-shot timers driven by the host frame loop.

Nothing here sleeps or spawns threads. A ``Timer`` only remembers a deadline;
the host calls ``tick(now)`` once per frame and the timer fires its callback
the first time ``now`` reaches the deadline. Tests drive time explicitly by
passing their own ``now`` values.

All times are milliseconds.
"""

from __future__ import annotations

import time
from typing import Callable, Optional


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ManualClock:
    """Deterministic clock for tests and offline replay."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class Timer:
    """A single-fire deadline with an explicit cancel.

    Usage:
        timer = Timer("hold")
        timer.start(now, 1000, on_done)
        # every frame:
        timer.tick(now)
    """

    def __init__(self, name: str = "timer"):
        self.name = name
        self._started_at: Optional[float] = None
        self._deadline: Optional[float] = None
        self._callback: Optional[Callable[[], None]] = None
        self._on_tick: Optional[Callable[[float], None]] = None

    @property
    def active(self) -> bool:
        return self._deadline is not None

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def start(
        self,
        now: float,
        duration: float,
        callback: Optional[Callable[[], None]] = None,
        on_tick: Optional[Callable[[float], None]] = None,
    ):
        """Arm the timer, replacing any pending deadline."""
        if duration < 0:
            raise ValueError(f"timer duration must be >= 0, got {duration}")
        self._started_at = now
        self._deadline = now + duration
        self._callback = callback
        self._on_tick = on_tick

    def cancel(self):
        self._started_at = None
        self._deadline = None
        self._callback = None
        self._on_tick = None

    def elapsed(self, now: float) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, now - self._started_at)

    def remaining(self, now: float) -> float:
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - now)

    def progress(self, now: float) -> float:
        """Fraction of the duration that has passed, 0..1."""
        if self._deadline is None or self._started_at is None:
            return 0.0
        total = self._deadline - self._started_at
        if total <= 0:
            return 1.0
        return min(1.0, self.elapsed(now) / total)

    def tick(self, now: float) -> bool:
        """Advance to ``now``. Returns True if the timer fired on this call."""
        if self._deadline is None:
            return False

        if now < self._deadline:
            if self._on_tick is not None:
                self._on_tick(self.elapsed(now))
            return False

        callback = self._callback
        # Clear before calling back so the callback may re-arm this timer.
        self.cancel()
        if callback is not None:
            callback()
        return True
