"""The frame loop: fan each landmark frame out to every listener.

    engine = GestureEngine.from_config(load_engine_config("story.yaml"))
    engine.on_event(lambda e: print(e.to_dict()))

    for frame in frames:
        engine.process_frame(frame)

One call to ``process_frame`` runs every enabled listener on the frame, then
advances every listener's timer to the same ``now``, then hands the events
produced by both phases to the engine subscribers in emission order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from storygesture.config import EngineConfig, ListenerConfig
from storygesture.emphasis import EmphasisListener
from storygesture.events import GestureEvent
from storygesture.frames import LandmarkFrame
from storygesture.highlight import HighlightListener
from storygesture.listener import GestureListener
from storygesture.playback import LinearPlaybackListener
from storygesture.pose import PointPoseListener, RangePoseListener, RectPoseListener, ThumbPoseListener
from storygesture.profiler import StageProfiler
from storygesture.radial import RadialPlaybackListener
from storygesture.stroke import StrokeListener
from storygesture.unistroke import UnistrokeRecognizer

logger = logging.getLogger("storygesture.engine")

LISTENER_TYPES: dict[str, type[GestureListener]] = {
    cls.config_type.kind: cls
    for cls in (
        PointPoseListener,
        RectPoseListener,
        RangePoseListener,
        StrokeListener,
        RadialPlaybackListener,
        LinearPlaybackListener,
        EmphasisListener,
        HighlightListener,
        ThumbPoseListener,
    )
}

# Listener kinds that run the unistroke recognizer.
_RECOGNIZER_KINDS = (PointPoseListener, StrokeListener)


def build_listener(config: ListenerConfig, recognizer: Optional[UnistrokeRecognizer] = None) -> GestureListener:
    """Instantiate the listener class that matches ``config.kind``."""
    cls = LISTENER_TYPES.get(config.kind)
    if cls is None:
        raise ValueError(f"no listener for kind {config.kind!r}")
    if recognizer is not None and cls in _RECOGNIZER_KINDS:
        return cls(config, recognizer=recognizer)
    return cls(config)


@dataclass
class EngineStats:
    total_frames: int
    total_events: int
    events_by_type: dict[str, int] = field(default_factory=dict)
    listeners: list[dict] = field(default_factory=list)
    profiler_summary: dict = field(default_factory=dict)


class GestureEngine:
    """Registry of listeners plus the per-frame dispatch loop."""

    def __init__(self, listeners: Optional[Iterable[GestureListener]] = None, enable_profiling: bool = True):
        self._listeners: dict[str, GestureListener] = {}
        self._callbacks: list[Callable[[GestureEvent], None]] = []
        self.profiler = StageProfiler()
        self.profiler.enabled = enable_profiling
        self._frame_count = 0
        self._event_count = 0
        self._event_types: dict[str, int] = {}
        self._now = 0.0
        for listener in listeners or ():
            self.add_listener(listener)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        recognizer: Optional[UnistrokeRecognizer] = None,
        enable_profiling: bool = True,
    ) -> GestureEngine:
        engine = cls([build_listener(c, recognizer) for c in config.listeners], enable_profiling=enable_profiling)
        logger.info("Engine built with %d listener(s): %s", len(engine.listeners), ", ".join(engine.listener_names))
        return engine

    # --- registry ---

    def add_listener(self, listener: GestureListener):
        if listener.name in self._listeners:
            raise ValueError(f"listener {listener.name!r} already registered")
        self._listeners[listener.name] = listener

    def remove_listener(self, name: str) -> bool:
        listener = self._listeners.pop(name, None)
        if listener is None:
            return False
        listener.close()
        return True

    def get_listener(self, name: str) -> Optional[GestureListener]:
        return self._listeners.get(name)

    @property
    def listeners(self) -> list[GestureListener]:
        return list(self._listeners.values())

    @property
    def listener_names(self) -> list[str]:
        return list(self._listeners)

    def on_event(self, callback: Callable[[GestureEvent], None]):
        """Register a callback for events from every listener."""
        self._callbacks.append(callback)

    # --- frame loop ---

    def process_frame(self, frame: LandmarkFrame, now: Optional[float] = None) -> list[GestureEvent]:
        """Run one frame through all listeners and return the events it produced."""
        now = frame.timestamp if now is None else now
        self._now = now
        self._frame_count += 1

        with self.profiler.stage("total"):
            with self.profiler.stage("listeners"):
                for listener in self.listeners:
                    if listener.enabled:
                        listener.process_frame(frame, now)
            with self.profiler.stage("timers"):
                for listener in self.listeners:
                    if listener.enabled:
                        listener.tick(now)
            with self.profiler.stage("dispatch"):
                events = self._drain()
        return events

    def tick(self, now: float) -> list[GestureEvent]:
        """Advance timers without a new frame (e.g. when the tracker stalls)."""
        self._now = now
        for listener in self.listeners:
            if listener.enabled:
                listener.tick(now)
        return self._drain()

    def _drain(self) -> list[GestureEvent]:
        events: list[GestureEvent] = []
        for listener in self.listeners:
            events.extend(listener.drain_events())
        for event in events:
            self._event_count += 1
            self._event_types[event.event_type] = self._event_types.get(event.event_type, 0) + 1
            for callback in self._callbacks:
                try:
                    callback(event)
                except Exception as e:
                    logger.error("Engine subscriber error: %s", e)
        return events

    def reset(self) -> list[GestureEvent]:
        """Reset every listener and dispatch their cleared events."""
        for listener in self.listeners:
            listener.reset()
        return self._drain()

    def close(self):
        for listener in self.listeners:
            listener.close()
        self._listeners.clear()
        self._callbacks.clear()
        logger.info("Engine closed after %d frames", self._frame_count)

    def stats(self) -> EngineStats:
        return EngineStats(
            total_frames=self._frame_count,
            total_events=self._event_count,
            events_by_type=dict(self._event_types),
            listeners=[listener.describe() for listener in self.listeners],
            profiler_summary=self.profiler.summary(),
        )
