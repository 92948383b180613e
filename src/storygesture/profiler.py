"""Per-stage timing for the engine frame loop.

The engine wraps each phase of ``process_frame`` in ``profiler.stage(name)``.
Only the last ``window_size`` samples per stage are kept, so the summary
reflects recent behaviour rather than the whole session.
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Iterator, Optional

import numpy as np


@dataclass
class StageStats:
    name: str
    avg_ms: float
    min_ms: float
    max_ms: float
    p95_ms: float
    calls: int


class StageProfiler:
    """Rolling wall-clock timings keyed by stage name.

    Usage:
        profiler = StageProfiler()
        with profiler.stage("listeners"):
            ...
        profiler.summary()["listeners"]["p95_ms"]
    """

    STAGES = ("listeners", "timers", "dispatch", "total")

    def __init__(self, window_size: int = 240):
        self.window_size = window_size
        self._samples: dict[str, deque[float]] = {}
        self._calls: dict[str, int] = {}
        self.enabled = True
        for name in self.STAGES:
            self._track(name)

    def _track(self, name: str):
        self._samples[name] = deque(maxlen=self.window_size)
        self._calls[name] = 0

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        if name not in self._samples:
            self._track(name)
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._samples[name].append((time.perf_counter() - t0) * 1000.0)
            self._calls[name] += 1

    def stats(self, name: str) -> Optional[StageStats]:
        samples = self._samples.get(name)
        if not samples:
            return None
        arr = np.fromiter(samples, dtype=np.float64)
        return StageStats(
            name=name,
            avg_ms=float(arr.mean()),
            min_ms=float(arr.min()),
            max_ms=float(arr.max()),
            p95_ms=float(np.percentile(arr, 95)),
            calls=self._calls[name],
        )

    def summary(self) -> dict[str, dict]:
        """Rounded stats for every stage that has run at least once."""
        out = {}
        for name in self._samples:
            s = self.stats(name)
            if s is None:
                continue
            row = asdict(s)
            row.pop("name")
            out[name] = {k: round(v, 3) if isinstance(v, float) else v for k, v in row.items()}
        return out

    def reset(self):
        for name in list(self._samples):
            self._track(name)
