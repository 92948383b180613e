"""Highlight: follow a single pointing finger over the chart."""

from __future__ import annotations

from typing import Optional

from storygesture.config import HighlightConfig
from storygesture.events import HighlightEvent
from storygesture.listener import GestureListener, ListenerHandData


class HighlightListener(GestureListener):
    config_type = HighlightConfig

    def __init__(self, config: HighlightConfig):
        super().__init__(config)
        self.last_position: Optional[tuple[float, float]] = None

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        data = hands.get(self.dominant_hand)
        if data is None or hand_count == 2:
            return
        point = data.primary
        if not point.is_visible:
            return
        if not self.contains(point):
            self.last_position = None
            return
        self.last_position = (point.x, point.y)
        self.publish(HighlightEvent(position=self.last_position, listener=self.name, timestamp=now))

    def reset_state(self):
        self.last_position = None

    def cleared_event(self) -> HighlightEvent:
        return HighlightEvent(position=(0.0, 0.0), listener=self.name, timestamp=self._now)
