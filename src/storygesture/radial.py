"""Rotational playback: count laps of the index tip around the region center.

The angle is measured in degrees, 0-360, clockwise on screen starting from
the positive x axis. A lap only counts when the finger visits the four
quadrants in order; each quadrant entry pushes onto a stack of at most four
angles, and re-entering the first quadrant with a full stack completes the
lap.

In ``normal`` mode each completed lap emits a ``continuous`` pulse. In
``tracking`` mode, once a lap has completed, every in-bounds frame emits the
``discrete`` angle fraction so the user can scrub by turning.
"""

from __future__ import annotations

import logging
import math
from enum import Enum

from storygesture.config import RadialConfig
from storygesture.events import PlaybackEvent
from storygesture.frames import TrackedPoint
from storygesture.listener import GestureListener, ListenerHandData

logger = logging.getLogger("storygesture.radial")

QUADRANT_UPPER_BOUNDS = (90.0, 180.0, 270.0, 360.0)


class RadialMode(str, Enum):
    NORMAL = "normal"
    TRACKING = "tracking"


class RadialPlaybackListener(GestureListener):
    config_type = RadialConfig

    def __init__(self, config: RadialConfig):
        super().__init__(config)
        self.mode = RadialMode(config.mode)
        self.idle_timeout = config.idle_timeout
        self.rotations = 0
        self.angle_stack: list[float] = []

    def set_mode(self, mode: RadialMode | str):
        self.mode = RadialMode(mode)

    def angle_from_center(self, point: TrackedPoint) -> float:
        cx, cy = self.region.center
        dx = cx - point.x
        dy = cy - point.y
        theta = math.degrees(math.atan2(-dy, -dx))
        if theta < 0:
            theta += 360.0
        return theta

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        data = hands.get(self.dominant_hand) or hands.get(self.non_dominant_hand)
        if data is None:
            return
        point = data.primary
        if not point.is_visible:
            return
        if not self.contains(point):
            self.reset_angle_state()
            return
        self.handle_angle(self.angle_from_center(point), now)

    def handle_angle(self, theta: float, now: float):
        if self.rotations >= 1 and self.mode is RadialMode.TRACKING:
            self.publish(PlaybackEvent(kind="discrete", value=theta / 360.0, listener=self.name, timestamp=now))
            return

        if theta <= QUADRANT_UPPER_BOUNDS[0]:
            if len(self.angle_stack) == 4:
                self.rotations += 1
                self.angle_stack = []
                logger.debug("%s: rotation %d completed", self.name, self.rotations)
                if self.mode is RadialMode.NORMAL:
                    self.publish(PlaybackEvent(kind="continuous", value=True, listener=self.name, timestamp=now))
            if not self.angle_stack:
                self._push(theta, now)
            return

        # Only the next quadrant in order may be pushed.
        depth = len(self.angle_stack)
        if 1 <= depth <= 3 and QUADRANT_UPPER_BOUNDS[depth - 1] < theta <= QUADRANT_UPPER_BOUNDS[depth]:
            self._push(theta, now)

    def _push(self, theta: float, now: float):
        self.angle_stack.append(theta)
        self.timer.start(now, self.idle_timeout, self._on_idle)

    def _on_idle(self):
        if self.rotations >= 1 and self.mode is RadialMode.TRACKING:
            return
        logger.debug("%s: no progress for %.0f ms, clearing angles", self.name, self.idle_timeout)
        self.reset_angle_state()

    def reset_angle_state(self):
        self.timer.cancel()
        self.rotations = 0
        self.angle_stack = []

    def reset_state(self):
        self.reset_angle_state()
