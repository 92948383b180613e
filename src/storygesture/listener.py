"""Base class shared by every gesture listener.

A listener owns a region of the canvas, the hands and classifier labels it
reacts to, one timer, and a list of subscribers. The host calls
``process_frame(frame, now)`` for every video frame and ``tick(now)`` to let
timers fire; confirmed events are pushed to subscribers as they happen and
queued for ``drain_events()``.

Subclasses implement ``handle_frame`` (per-frame state machine) and
``reset_state`` (drop everything in flight).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Mapping, Optional

from storygesture.config import ListenerConfig
from storygesture.events import GestureEvent
from storygesture.frames import UNSEEN, Hand, HandLandmark, LandmarkFrame, TrackedPoint
from storygesture.geometry import Region, distance
from storygesture.timers import Timer

logger = logging.getLogger("storygesture.listener")

EventCallback = Callable[[GestureEvent], None]


@dataclass(frozen=True)
class ProcessedHandData:
    """One hand that matched the listener's label this frame."""
    gesture: str
    tracked: tuple[int, ...]
    landmarks: Mapping[int, TrackedPoint] = field(default_factory=dict)

    def position(self, landmark_id: int) -> TrackedPoint:
        return self.landmarks.get(int(landmark_id), UNSEEN)

    @property
    def positions(self) -> dict[int, TrackedPoint]:
        """Tracked landmarks only."""
        return {i: self.position(i) for i in self.tracked}

    @property
    def primary(self) -> TrackedPoint:
        return self.position(self.tracked[0]) if self.tracked else UNSEEN


ListenerHandData = dict[Hand, Optional[ProcessedHandData]]


class GestureListener(ABC):
    """Turns per-frame hand data into discrete events for one canvas region."""

    config_type: ClassVar[type[ListenerConfig]] = ListenerConfig
    default_landmarks: ClassVar[tuple[int, ...]] = (HandLandmark.INDEX_FINGER_TIP,)

    def __init__(self, config: ListenerConfig):
        if not isinstance(config, self.config_type):
            raise TypeError(f"{type(self).__name__} needs a {self.config_type.__name__}, got {type(config).__name__}")
        self.config = config
        self.name = config.name
        self.region: Region = config.region
        self.dominant_hand = config.dominant_hand
        self.gesture_types = config.gesture_types
        self.tracked_landmarks: tuple[int, ...] = tuple(config.tracked_landmarks) or self.default_landmarks
        self.touch_distance = config.touch_distance
        self.enabled = config.enabled

        self.timer = Timer(f"{self.name}.timer")
        self.last_event: Optional[GestureEvent] = None
        self._callbacks: list[EventCallback] = []
        self._outbox: list[GestureEvent] = []
        self._now = 0.0

    @property
    def non_dominant_hand(self) -> Hand:
        return self.dominant_hand.other

    @property
    def kind(self) -> str:
        return self.config.kind

    # --- subscribers ---

    def on_event(self, callback: EventCallback):
        """Register a callback for every event this listener emits."""
        self._callbacks.append(callback)

    def publish(self, event: GestureEvent):
        self.last_event = event
        self._outbox.append(event)
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error("Listener %s subscriber error: %s", self.name, e)

    def drain_events(self) -> list[GestureEvent]:
        events, self._outbox = self._outbox, []
        return events

    # --- frame loop ---

    def select_hands(self, frame: LandmarkFrame) -> ListenerHandData:
        """Keep only hands whose labels match one of the configured pairs.

        The first pair that matches at least one hand wins, so a frame is
        never interpreted under two different label pairs at once.
        """
        for pair in self.gesture_types:
            data: ListenerHandData = {}
            for hand in Hand:
                hand_data = frame.hand(hand)
                label = pair.for_hand(hand)
                if hand_data is not None and hand_data.landmarks and hand_data.has_gesture(label):
                    data[hand] = ProcessedHandData(
                        gesture=label,
                        tracked=self.tracked_landmarks,
                        landmarks=hand_data.landmarks,
                    )
                else:
                    data[hand] = None
            if any(d is not None for d in data.values()):
                return data
        return {hand: None for hand in Hand}

    def process_frame(self, frame: LandmarkFrame, now: Optional[float] = None):
        if not self.enabled:
            return
        self._now = frame.timestamp if now is None else now
        self.handle_frame(self.select_hands(frame), frame.hand_count, self._now)

    def tick(self, now: float):
        self._now = now
        self.timer.tick(now)

    @abstractmethod
    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        """React to one frame of matched hand data."""

    @abstractmethod
    def reset_state(self):
        """Drop snapshots, buffers and counters."""

    def cleared_event(self) -> Optional[GestureEvent]:
        """Event announcing that this listener's output was cleared, if any."""
        return None

    def reset(self):
        """Cancel the timer, clear all state, and publish a cleared event."""
        self.timer.cancel()
        self.reset_state()
        event = self.cleared_event()
        if event is not None:
            self.publish(event)
        logger.debug("Listener %s reset", self.name)

    def close(self):
        """Tear down: nothing fires after this."""
        self.timer.cancel()
        self.reset_state()
        self._callbacks.clear()
        self._outbox.clear()
        self.enabled = False

    def update_region(self, region: Region):
        self.region = region

    # --- geometry helpers ---

    def contains(self, point: TrackedPoint) -> bool:
        """In-bounds test; an invisible point is simply out of bounds."""
        return point.is_visible and self.region.contains(point)

    def thumbs_touch(self, hands: ListenerHandData) -> bool:
        one = hands.get(self.non_dominant_hand)
        two = hands.get(self.dominant_hand)
        if one is None or two is None:
            return False
        a = one.position(HandLandmark.THUMB_TIP)
        b = two.position(HandLandmark.THUMB_TIP)
        if not (a.is_visible and b.is_visible):
            return False
        return distance(a, b) < self.touch_distance

    def is_pinch(self, hands: ListenerHandData, hand: Hand) -> bool:
        data = hands.get(hand)
        if data is None:
            return False
        index = data.position(HandLandmark.INDEX_FINGER_TIP)
        thumb = data.position(HandLandmark.THUMB_TIP)
        if not (index.is_visible and thumb.is_visible):
            return False
        return distance(index, thumb) < self.touch_distance

    def describe(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind,
            "enabled": self.enabled,
            "region": self.region.to_dict(),
            "timer_active": self.timer.active,
            "last_event": self.last_event.to_dict() if self.last_event else None,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, region={self.region!r})"
