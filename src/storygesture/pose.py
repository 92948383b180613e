"""Pose-hold confirmation and the listeners built on it.

Hand-tracking jitter makes instantaneous pose matching useless, so a pose
only counts once it has been held still. ``PoseHoldProtocol`` is the state
machine behind the point, rectangle and range listeners:

    IDLE --all landmarks in bounds--> HOLDING   (snapshot taken, hold timer armed)
    HOLDING --any landmark out--> IDLE          (timer cancelled, nothing emitted)
    HOLDING --timer, drift <= tolerance--> COOLDOWN   (positions accepted)
    HOLDING --timer, drift > tolerance--> IDLE
    COOLDOWN --reset pause elapsed--> IDLE

Drift is measured per landmark between the snapshot and the last in-bounds
position, on every tracked hand.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from enum import Enum
from typing import Callable, Optional

from storygesture.config import (
    LinearPlaybackConfig,
    PointPoseConfig,
    RangePoseConfig,
    RectPoseConfig,
    ThumbPoseConfig,
)
from storygesture.errors import LandmarkContractError
from storygesture.events import ForeshadowEvent, ForeshadowShape, SelectionEvent
from storygesture.frames import UNSEEN, Hand, HandLandmark, TrackedPoint
from storygesture.geometry import Circle, Rect, distance
from storygesture.listener import GestureListener, ListenerHandData
from storygesture.stroke import StrokeCapture, StrokePoints
from storygesture.timers import Timer
from storygesture.unistroke import UnistrokeRecognizer

logger = logging.getLogger("storygesture.pose")

PosePosition = dict[Hand, dict[int, TrackedPoint]]


class PoseState(str, Enum):
    IDLE = "idle"
    HOLDING = "holding"
    COOLDOWN = "cooldown"


def _copy(positions: PosePosition) -> PosePosition:
    return {hand: dict(points) for hand, points in positions.items()}


def require_point(positions: PosePosition, hand: Hand, landmark: int, computation: str) -> TrackedPoint:
    """Fetch a landmark that earlier bounds checks guaranteed to be present."""
    point = positions.get(hand, {}).get(int(landmark), UNSEEN)
    if not point.is_visible:
        raise LandmarkContractError(
            computation,
            f"{hand.value} landmark {int(landmark)} is undefined",
        )
    return point


class PoseHoldProtocol:
    """Hold-still confirmation for one or two hands.

    Shares the owning listener's timer: the hold timer and the cooldown
    timer are never armed at the same time.
    """

    def __init__(
        self,
        timer: Timer,
        pose_duration: float,
        reset_pause_duration: float,
        tolerance: float,
        validator: Optional[Callable[[PosePosition], bool]] = None,
        name: str = "pose",
    ):
        self.timer = timer
        self.pose_duration = pose_duration
        self.reset_pause_duration = reset_pause_duration
        self.tolerance = tolerance
        self.validator = validator
        self.name = name

        self.state = PoseState.IDLE
        self.snapshot: Optional[PosePosition] = None
        self.current: Optional[PosePosition] = None
        self._accepted: Optional[PosePosition] = None
        self._now = 0.0

    def update(self, positions: PosePosition, in_bounds: bool, now: float):
        """Feed one frame. ``positions`` is only stored when ``in_bounds``."""
        self._now = now
        if self.state is PoseState.COOLDOWN:
            return

        if not in_bounds:
            if self.state is PoseState.HOLDING:
                logger.debug("%s: hold aborted, pose left the region", self.name)
                self.timer.cancel()
            self._clear()
            return

        self.current = _copy(positions)
        if self.state is PoseState.IDLE:
            self.snapshot = _copy(positions)
            self.state = PoseState.HOLDING
            self.timer.start(now, self.pose_duration, self._decide)
            logger.debug("%s: hold started", self.name)

    def tick(self, now: float) -> Optional[PosePosition]:
        """Advance timers. Returns the accepted positions when a hold confirms."""
        self._now = now
        self.timer.tick(now)
        accepted, self._accepted = self._accepted, None
        return accepted

    def displacements(self) -> dict[Hand, dict[int, float]]:
        """Per-landmark drift between the snapshot and the current position."""
        if self.snapshot is None or self.current is None:
            raise LandmarkContractError("pose hold decision", "no snapshot or current position")
        result: dict[Hand, dict[int, float]] = {}
        for hand, points in self.snapshot.items():
            result[hand] = {}
            for landmark in points:
                start = require_point(self.snapshot, hand, landmark, "pose hold decision")
                end = require_point(self.current, hand, landmark, "pose hold decision")
                result[hand][landmark] = distance(start, end)
        return result

    def _decide(self):
        drift = self.displacements()
        accepted = self.current
        if any(d > self.tolerance for points in drift.values() for d in points.values()):
            logger.debug("%s: hold rejected, drift %s exceeds %.1f", self.name, drift, self.tolerance)
            accepted = None
        elif self.validator is not None and not self.validator(accepted):
            logger.debug("%s: hold rejected by shape check", self.name)
            accepted = None

        self._clear()
        if accepted is None:
            return

        logger.debug("%s: hold accepted", self.name)
        self._accepted = accepted
        self.state = PoseState.COOLDOWN
        self.timer.start(self._now, self.reset_pause_duration, self._end_cooldown)

    def _end_cooldown(self):
        self.state = PoseState.IDLE
        logger.debug("%s: cooldown over", self.name)

    def _clear(self):
        self.snapshot = None
        self.current = None
        self.state = PoseState.IDLE

    def reset(self):
        self.timer.cancel()
        self._accepted = None
        self._clear()


class PoseListener(GestureListener):
    """Listener whose events come from a ``PoseHoldProtocol``."""

    def __init__(self, config):
        super().__init__(config)
        self.protocol = PoseHoldProtocol(
            self.timer,
            pose_duration=config.pose_duration,
            reset_pause_duration=config.reset_pause_duration,
            tolerance=config.tolerance,
            validator=self.validate_pose,
            name=self.name,
        )

    @property
    def state(self) -> PoseState:
        return self.protocol.state

    @abstractmethod
    def hold_positions(self, hands: ListenerHandData) -> tuple[PosePosition, bool]:
        """Positions to hold still and whether all of them are in bounds."""

    @abstractmethod
    def on_confirmed(self, positions: PosePosition):
        """Publish the event for an accepted hold."""

    def validate_pose(self, positions: PosePosition) -> bool:
        return True

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        positions, in_bounds = self.hold_positions(hands)
        self.protocol.update(positions, in_bounds, now)

    def tick(self, now: float):
        self._now = now
        accepted = self.protocol.tick(now)
        if accepted is not None:
            self.on_confirmed(accepted)

    def reset_state(self):
        self.protocol.reset()

    def _hand_positions(self, hands: ListenerHandData, hand_list: tuple[Hand, ...]) -> tuple[PosePosition, bool]:
        positions: PosePosition = {}
        in_bounds = True
        for hand in hand_list:
            data = hands.get(hand)
            if data is None:
                return {}, False
            positions[hand] = data.positions
            in_bounds = in_bounds and all(self.contains(p) for p in positions[hand].values())
        return positions, in_bounds


class PointPoseListener(PoseListener):
    """Hold the dominant index finger still inside the region to select."""

    config_type = PointPoseConfig

    def __init__(self, config: PointPoseConfig, recognizer: Optional[UnistrokeRecognizer] = None):
        super().__init__(config)
        self.selection_keys = config.selection_keys
        self.listener_mode = config.listener_mode
        self.capture: Optional[StrokeCapture] = None
        self.recognizer: Optional[UnistrokeRecognizer] = None
        if self.listener_mode == "stroke":
            self.recognizer = recognizer or UnistrokeRecognizer.with_defaults(config.templates)
            self.capture = StrokeCapture(self.timer, config.trigger_duration, self._on_stroke, config.min_points)

    def hold_positions(self, hands: ListenerHandData) -> tuple[PosePosition, bool]:
        return self._hand_positions(hands, (self.dominant_hand,))

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        if self.capture is None:
            super().handle_frame(hands, hand_count, now)
            return
        dominant = hands.get(self.dominant_hand)
        point = dominant.position(HandLandmark.INDEX_FINGER_TIP) if dominant is not None else UNSEEN
        self.capture.update(self.thumbs_touch(hands), point, self.contains(point), now)

    def tick(self, now: float):
        if self.capture is None:
            super().tick(now)
            return
        self._now = now
        self.timer.tick(now)

    def _on_stroke(self, points: StrokePoints):
        result = self.recognizer.recognize(points, use_protractor=self.config.use_protractor)
        if result.name == self.config.stroke_trigger_name and result.score >= self.config.min_score:
            self._publish_selection()
        else:
            logger.debug("%s: stroke %r did not select", self.name, result.name)

    def on_confirmed(self, positions: PosePosition):
        self._publish_selection()

    def _publish_selection(self):
        self.publish(SelectionEvent(keys=self.selection_keys, listener=self.name, timestamp=self._now))

    def cleared_event(self) -> SelectionEvent:
        return SelectionEvent(keys=None, listener=self.name, timestamp=self._now)

    def reset_state(self):
        super().reset_state()
        if self.capture is not None:
            self.capture.reset()


class RectPoseListener(PoseListener):
    """Frame an area with index fingers and thumbs of both hands.

    The rectangle spans from the left index tip to the right thumb tip. In
    circle mode the two index tips and the two thumb tips must touch; the
    right hand's index/thumb gap is then the diameter.
    """

    config_type = RectPoseConfig
    default_landmarks = (HandLandmark.INDEX_FINGER_TIP, HandLandmark.THUMB_TIP)

    def __init__(self, config: RectPoseConfig):
        super().__init__(config)
        self.shape = ForeshadowShape(config.shape)
        self.shape_tolerance = config.shape_tolerance

    def hold_positions(self, hands: ListenerHandData) -> tuple[PosePosition, bool]:
        # Both hands make the same pose, dominance does not apply.
        return self._hand_positions(hands, (Hand.RIGHT, Hand.LEFT))

    def validate_pose(self, positions: PosePosition) -> bool:
        if self.shape is not ForeshadowShape.CIRCLE:
            return True
        return self.is_circle_shape(positions) and self.circle_area(positions).radius > 0

    def is_circle_shape(self, positions: PosePosition) -> bool:
        index_gap = distance(
            require_point(positions, Hand.LEFT, HandLandmark.INDEX_FINGER_TIP, "circle shape"),
            require_point(positions, Hand.RIGHT, HandLandmark.INDEX_FINGER_TIP, "circle shape"),
        )
        thumb_gap = distance(
            require_point(positions, Hand.LEFT, HandLandmark.THUMB_TIP, "circle shape"),
            require_point(positions, Hand.RIGHT, HandLandmark.THUMB_TIP, "circle shape"),
        )
        return index_gap < self.shape_tolerance and thumb_gap < self.shape_tolerance

    def rect_area(self, positions: PosePosition) -> Rect:
        left_index = require_point(positions, Hand.LEFT, HandLandmark.INDEX_FINGER_TIP, "rectangle area")
        right_thumb = require_point(positions, Hand.RIGHT, HandLandmark.THUMB_TIP, "rectangle area")
        return Rect(
            x=min(left_index.x, right_thumb.x),
            y=min(left_index.y, right_thumb.y),
            width=abs(left_index.x - right_thumb.x),
            height=abs(left_index.y - right_thumb.y),
        )

    def circle_area(self, positions: PosePosition) -> Circle:
        index = require_point(positions, Hand.RIGHT, HandLandmark.INDEX_FINGER_TIP, "circle area")
        thumb = require_point(positions, Hand.RIGHT, HandLandmark.THUMB_TIP, "circle area")
        return Circle(x=index.x, y=(index.y + thumb.y) / 2, radius=abs(thumb.y - index.y) / 2)

    def on_confirmed(self, positions: PosePosition):
        if self.shape is ForeshadowShape.CIRCLE:
            area = self.circle_area(positions)
        else:
            area = self.rect_area(positions)
        self.publish(ForeshadowEvent(
            shape=self.shape,
            area=area,
            count=self.config.states_count,
            mode=self.config.states_mode,
            listener=self.name,
            timestamp=self._now,
        ))

    def cleared_event(self) -> ForeshadowEvent:
        return ForeshadowEvent(shape=self.shape, area=None, listener=self.name, timestamp=self._now)


class RangePoseListener(PoseListener):
    """Two open hands held still mark a horizontal range of the chart."""

    config_type = RangePoseConfig
    default_landmarks = (HandLandmark.MIDDLE_FINGER_TIP,)

    def __init__(self, config: RangePoseConfig):
        super().__init__(config)
        self.playback_range: Optional[tuple[TrackedPoint, TrackedPoint]] = None

    @property
    def canvas_height(self) -> float:
        if self.config.canvas_height is not None:
            return self.config.canvas_height
        _, top, _, height = _bounds(self.region)
        return top + height

    def hold_positions(self, hands: ListenerHandData) -> tuple[PosePosition, bool]:
        return self._hand_positions(hands, (Hand.LEFT, Hand.RIGHT))

    def range_area(self, positions: PosePosition) -> Rect:
        landmark = self.tracked_landmarks[0]
        left = positions.get(Hand.LEFT, {}).get(int(landmark), UNSEEN)
        right = positions.get(Hand.RIGHT, {}).get(int(landmark), UNSEEN)
        if not (left.is_visible and right.is_visible):
            raise LandmarkContractError("range area", "one of the finger positions is undefined")
        self.playback_range = (left, right)
        return Rect(
            x=min(left.x, right.x),
            y=0.0,
            width=abs(left.x - right.x),
            height=self.canvas_height,
        )

    def on_confirmed(self, positions: PosePosition):
        area = self.range_area(positions)
        self.publish(ForeshadowEvent(
            shape=ForeshadowShape.RANGE,
            area=area,
            count=self.config.states_count,
            mode=self.config.states_mode,
            listener=self.name,
            timestamp=self._now,
        ))

    def playback_config(self, height: float = 50.0, name: Optional[str] = None) -> Optional[LinearPlaybackConfig]:
        """Config for a linear playback strip between the confirmed hands."""
        if self.playback_range is None:
            return None
        left, right = self.playback_range
        x, _, width, _ = _bounds(self.region)
        return LinearPlaybackConfig(
            name=name or f"{self.name}-playback",
            region=Rect(x=x, y=min(left.y, right.y), width=width, height=height),
            dominant_hand=self.dominant_hand,
            emit_range=(min(left.x, right.x), max(left.x, right.x)),
        )

    def reset_state(self):
        super().reset_state()
        self.playback_range = None

    def cleared_event(self) -> ForeshadowEvent:
        return ForeshadowEvent(shape=ForeshadowShape.RANGE, area=None, listener=self.name, timestamp=self._now)


class ThumbPoseListener(GestureListener):
    """Touch both thumbs inside the region to select, at most once per pause."""

    config_type = ThumbPoseConfig
    default_landmarks = (HandLandmark.INDEX_FINGER_TIP, HandLandmark.THUMB_TIP)

    def __init__(self, config: ThumbPoseConfig):
        super().__init__(config)
        self.selection_keys = config.selection_keys
        self.reset_pause_duration = config.reset_pause_duration

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        dominant = hands.get(self.dominant_hand)
        if dominant is None or hands.get(self.non_dominant_hand) is None:
            return
        if not self.thumbs_touch(hands):
            return
        if self.timer.active or not self.contains(dominant.position(HandLandmark.THUMB_TIP)):
            return
        self.publish(SelectionEvent(keys=self.selection_keys, listener=self.name, timestamp=now))
        self.timer.start(now, self.reset_pause_duration)

    def reset_state(self):
        pass

    def cleared_event(self) -> SelectionEvent:
        return SelectionEvent(keys=None, listener=self.name, timestamp=self._now)


def _bounds(region) -> tuple[float, float, float, float]:
    if isinstance(region, Circle):
        return region.x - region.radius, region.y - region.radius, 2 * region.radius, 2 * region.radius
    return region.x, region.y, region.width, region.height
