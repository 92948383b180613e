"""Linear playback: scrub the timeline by sliding the index tip sideways."""

from __future__ import annotations

import logging
from typing import Optional

from storygesture.config import LinearPlaybackConfig
from storygesture.events import PlaybackEvent
from storygesture.geometry import Circle
from storygesture.listener import GestureListener, ListenerHandData

logger = logging.getLogger("storygesture.playback")


class LinearPlaybackListener(GestureListener):
    """Emits the finger's horizontal position as a 0..1 ratio of the region.

    ``emit_range`` narrows where emission happens (for example to the span
    between two hands confirmed by a range pose). Nothing is emitted while
    both hands are visible.
    """

    config_type = LinearPlaybackConfig

    def __init__(self, config: LinearPlaybackConfig):
        super().__init__(config)
        self.emit_range: Optional[tuple[float, float]] = config.emit_range

    def update_emit_range(self, emit_range: Optional[tuple[float, float]]):
        self.emit_range = emit_range
        logger.debug("%s: emit range set to %s", self.name, emit_range)

    def in_emit_range(self, x: float) -> bool:
        if self.emit_range is None:
            return True
        start, end = self.emit_range
        if start == end:
            return False
        return start <= x < end

    def ratio(self, x: float) -> float:
        if isinstance(self.region, Circle):
            left, width = self.region.x - self.region.radius, 2 * self.region.radius
        else:
            left, width = self.region.x, self.region.width
        return (x - left) / width

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        data = hands.get(self.dominant_hand)
        if data is None or hand_count == 2:
            return
        point = data.primary
        if not self.contains(point) or not self.in_emit_range(point.x):
            return
        self.publish(PlaybackEvent(kind="discrete", value=self.ratio(point.x), listener=self.name, timestamp=now))

    def reset_state(self):
        self.emit_range = self.config.emit_range

    def cleared_event(self) -> PlaybackEvent:
        return PlaybackEvent(kind="discrete", value=None, listener=self.name, timestamp=self._now)
