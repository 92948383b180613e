"""Stroke recording and the stroke-recognition listener.

Touching both thumbs together starts recording the dominant index tip; the
next touch (or the end of the recording window) stops it. The captured stroke
is then either matched against the unistroke templates or, in enrollment
mode, stored as a new template. A recognized trigger stroke is also fitted
with a circle; its radius relative to the region maps to an ``Affect``.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from storygesture.circle_fit import CircleFitResult, CircleFitter
from storygesture.config import StrokeConfig
from storygesture.errors import DegenerateStrokeError
from storygesture.events import Affect, StrokeEvent
from storygesture.frames import UNSEEN, TrackedPoint
from storygesture.geometry import Circle, Rect, Region
from storygesture.listener import GestureListener, ListenerHandData
from storygesture.timers import Timer
from storygesture.unistroke import RecognitionResult, UnistrokeRecognizer

logger = logging.getLogger("storygesture.stroke")

StrokePoints = list[tuple[float, float]]


class StrokeCapture:
    """Thumbs-touch delimited recording of a single stroke.

    Only the rising edge of the touch signal counts: holding the thumbs
    together does not restart or stop anything. The buffer is emptied at the
    end of every cycle whether or not ``on_complete`` is called.
    """

    def __init__(
        self,
        timer: Timer,
        duration: float,
        on_complete: Callable[[StrokePoints], None],
        min_points: int = 5,
    ):
        self.timer = timer
        self.duration = duration
        self.min_points = min_points
        self._on_complete = on_complete
        self.points: StrokePoints = []
        self.recording = False
        self._touching = False

    def update(self, touching: bool, point: TrackedPoint, in_bounds: bool, now: float):
        rising = touching and not self._touching
        self._touching = touching

        if rising:
            if self.recording:
                self.finish()
            else:
                self.start(now)
            return

        if touching or not self.recording:
            return
        if point.is_visible and in_bounds:
            self.points.append((point.x, point.y))

    def start(self, now: float):
        self.points = []
        self.recording = True
        self.timer.start(now, self.duration, self.finish)
        logger.debug("stroke recording started (window %.0f ms)", self.duration)

    def finish(self):
        self.timer.cancel()
        points, self.points = self.points, []
        self.recording = False
        if len(points) < self.min_points:
            logger.debug("stroke discarded: %d point(s) < %d", len(points), self.min_points)
            return
        self._on_complete(points)

    def reset(self):
        self.timer.cancel()
        self.points = []
        self.recording = False
        self._touching = False

    def progress(self, now: float) -> float:
        return self.timer.progress(now) if self.recording else 0.0


def square_region(region: Region) -> Region:
    """Stroke regions are square, sized by their width."""
    if isinstance(region, Rect):
        return Rect(region.x, region.y, region.width, region.width)
    return region


def region_radius(region: Region) -> float:
    if isinstance(region, Circle):
        return region.radius
    return region.width / 2


def affect_for_radius(radius: float, region: Region) -> Affect:
    """Map a fitted radius onto three bands at 1/3 and 2/3 of the region radius."""
    outer = region_radius(region)
    if radius <= outer / 3:
        return Affect.NEGATIVE
    if radius <= outer * 2 / 3:
        return Affect.NEUTRAL
    return Affect.POSITIVE


class StrokeListener(GestureListener):
    """Recognizes (or enrolls) strokes drawn with the dominant index finger."""

    config_type = StrokeConfig

    def __init__(self, config: StrokeConfig, recognizer: Optional[UnistrokeRecognizer] = None):
        super().__init__(config)
        self.region = square_region(config.region)
        self.recognizer = recognizer or UnistrokeRecognizer.with_defaults(config.templates)
        self.trigger_name = config.stroke_trigger_name
        self.use_protractor = config.use_protractor
        self.min_score = config.min_score
        self.add_gesture = config.add_gesture
        self.gesture_name = config.gesture_name

        self.fitter = CircleFitter()
        self.capture = StrokeCapture(self.timer, config.trigger_duration, self._on_stroke, config.min_points)
        self.last_result: Optional[RecognitionResult] = None
        self.last_fit: Optional[CircleFitResult] = None

    @property
    def recording(self) -> bool:
        return self.capture.recording

    def update_region(self, region: Region):
        super().update_region(square_region(region))

    def set_enrollment(self, enabled: bool, gesture_name: Optional[str] = None):
        """Switch between recognizing strokes and enrolling them as templates."""
        self.add_gesture = enabled
        if gesture_name:
            self.gesture_name = gesture_name

    def handle_frame(self, hands: ListenerHandData, hand_count: int, now: float):
        touching = self.thumbs_touch(hands)
        dominant = hands.get(self.dominant_hand)
        point = dominant.primary if dominant is not None else UNSEEN
        self.capture.update(touching, point, self.contains(point), now)

    def _on_stroke(self, points: StrokePoints):
        if self.add_gesture:
            self._enroll(points)
        else:
            self._recognize(points)

    def _enroll(self, points: StrokePoints):
        if not self.gesture_name:
            logger.debug("stroke dropped: enrollment without a gesture name")
            return
        try:
            count = self.recognizer.add_template(self.gesture_name, points)
        except DegenerateStrokeError as e:
            logger.debug("stroke not enrolled: %s", e)
            return
        logger.info("Listener %s enrolled %r (%d template(s))", self.name, self.gesture_name, count)
        self.publish(StrokeEvent(
            name=self.gesture_name,
            score=1.0,
            enrolled=True,
            listener=self.name,
            timestamp=self._now,
        ))

    def _recognize(self, points: StrokePoints):
        result = self.recognizer.recognize(points, use_protractor=self.use_protractor)
        self.last_result = result
        if result.name != self.trigger_name or result.score < self.min_score:
            logger.debug("stroke %r (score %.2f) is not the trigger %r", result.name, result.score, self.trigger_name)
            return

        self.fitter.reset()
        self.fitter.add_points(points)
        fit = self.fitter.compute()
        self.fitter.reset()
        self.last_fit = fit
        affect = affect_for_radius(fit.radius, self.region) if fit.success else None

        self.publish(StrokeEvent(
            name=result.name,
            score=result.score,
            affect=affect,
            listener=self.name,
            timestamp=self._now,
        ))

    def reset_state(self):
        self.capture.reset()
        self.fitter.reset()
