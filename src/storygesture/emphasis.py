"""Emphasis: tap an open hand into the region to raise the animation intensity.

Each entry into the region adds ``step`` up to ``max_level``. While active,
the level decays by one every ``decay_interval`` and drops to zero when the
activity window (``duration``) runs out. The level picks the chart drawing
mode:

    level <= 50   sequential
    level <= 100  concurrent
    otherwise     drop
"""

from __future__ import annotations

import logging

from storygesture.config import EmphasisConfig
from storygesture.events import DrawingMode, EmphasisEvent
from storygesture.frames import HandLandmark
from storygesture.listener import GestureListener, ListenerHandData

logger = logging.getLogger("storygesture.emphasis")


def drawing_mode_for_level(level: int) -> DrawingMode:
    if level <= 50:
        return DrawingMode.SEQUENTIAL
    if level <= 100:
        return DrawingMode.CONCURRENT
    return DrawingMode.DROP


class EmphasisListener(GestureListener):
    config_type = EmphasisConfig
    default_landmarks = (HandLandmark.MIDDLE_FINGER_TIP,)

    def __init__(self, config: EmphasisConfig):
        super().__init__(config)
        self.level = 0
        self._was_inside = False
        self._last_decay = 0.0

    @property
    def drawing_mode(self) -> DrawingMode:
        return drawing_mode_for_level(self.level)

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        dominant = hands.get(self.dominant_hand)
        # Only counts while the other hand does not match.
        if dominant is None or hands.get(self.non_dominant_hand) is not None:
            return
        point = dominant.primary
        if not point.is_visible:
            return

        if not self.contains(point):
            self._was_inside = False
            return

        if not self.timer.active:
            self.timer.start(now, self.config.duration, self._expire, on_tick=self._decay)
            self._last_decay = now

        if not self._was_inside and self.level < self.config.max_level:
            self._change(min(self.config.step, self.config.max_level - self.level), now)
        self._was_inside = True

    def _decay(self, elapsed: float):
        interval = self.config.decay_interval
        steps = int((self._now - self._last_decay) // interval)
        if steps <= 0:
            return
        self._last_decay += steps * interval
        if self.level == 0:
            self.timer.cancel()
            return
        self._change(-min(steps, self.level), self._now)

    def _expire(self):
        logger.debug("%s: emphasis window over at level %d", self.name, self.level)
        if self.level:
            self._change(-self.level, self._now)

    def _change(self, delta: int, now: float):
        self.level += delta
        self.publish(EmphasisEvent(
            level=self.level,
            delta=delta,
            drawing_mode=self.drawing_mode,
            listener=self.name,
            timestamp=now,
        ))

    def reset_state(self):
        self.level = 0
        self._was_inside = False
