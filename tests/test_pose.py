"""Tests for the pose-hold protocol and the pose listeners."""

import math

import pytest

from storygesture.config import PointPoseConfig, RangePoseConfig, RectPoseConfig, ThumbPoseConfig
from storygesture.errors import LandmarkContractError
from storygesture.events import ForeshadowShape, SelectionEvent
from storygesture.frames import UNSEEN, Hand, HandData, HandLandmark, LandmarkFrame, TrackedPoint
from storygesture.geometry import Circle, Rect
from storygesture.pose import (
    PointPoseListener,
    PoseHoldProtocol,
    PoseState,
    RangePoseListener,
    RectPoseListener,
    ThumbPoseListener,
)
from storygesture.timers import Timer

INDEX = HandLandmark.INDEX_FINGER_TIP
THUMB = HandLandmark.THUMB_TIP
MIDDLE = HandLandmark.MIDDLE_FINGER_TIP


def hand(points, gesture="pointing"):
    return HandData.from_points(points, [gesture])


def frame(now, right=None, left=None):
    hands = {}
    if right is not None:
        hands[Hand.RIGHT] = right
    if left is not None:
        hands[Hand.LEFT] = left
    return LandmarkFrame(hands=hands, timestamp=now)


def run(listener, frames):
    """Feed frames and tick at each frame time, collecting events."""
    events = []
    listener.on_event(events.append)
    for f in frames:
        listener.process_frame(f)
        listener.tick(f.timestamp)
    return events


def steady(now_values, make):
    return [make(t) for t in now_values]


class TestPoseHoldProtocol:
    def make(self, **kwargs):
        return PoseHoldProtocol(Timer("hold"), pose_duration=1000, reset_pause_duration=2000, tolerance=30, **kwargs)

    def at(self, x, y):
        return {Hand.RIGHT: {INDEX: TrackedPoint(x, y)}}

    def test_zero_drift_accepts_once(self):
        protocol = self.make()
        accepted = []
        for t in range(0, 1100, 100):
            protocol.update(self.at(50, 50), True, t)
            result = protocol.tick(t)
            if result is not None:
                accepted.append((t, result))
        assert len(accepted) == 1
        assert accepted[0][0] == 1000
        assert protocol.state is PoseState.COOLDOWN

    def test_drift_over_tolerance_rejects(self):
        protocol = self.make()
        protocol.update(self.at(50, 50), True, 0)
        protocol.update(self.at(50 + 31, 50), True, 500)
        assert protocol.tick(1000) is None
        assert protocol.state is PoseState.IDLE

    def test_drift_within_tolerance_accepts(self):
        protocol = self.make()
        protocol.update(self.at(50, 50), True, 0)
        protocol.update(self.at(50 + 29, 50), True, 900)
        assert protocol.tick(1000) == self.at(79, 50)

    def test_out_of_bounds_aborts(self):
        protocol = self.make()
        protocol.update(self.at(50, 50), True, 0)
        protocol.update({}, False, 500)
        assert protocol.state is PoseState.IDLE
        assert not protocol.timer.active
        assert protocol.tick(1000) is None

    def test_cooldown_ignores_input_then_returns_idle(self):
        protocol = self.make()
        protocol.update(self.at(50, 50), True, 0)
        protocol.tick(1000)
        protocol.update(self.at(60, 60), True, 1500)
        assert protocol.state is PoseState.COOLDOWN
        protocol.tick(3000)
        assert protocol.state is PoseState.IDLE

    def test_validator_can_reject(self):
        protocol = self.make(validator=lambda positions: False)
        protocol.update(self.at(50, 50), True, 0)
        assert protocol.tick(1000) is None
        assert protocol.state is PoseState.IDLE

    def test_missing_landmark_at_decision(self):
        protocol = self.make()
        protocol.update(self.at(50, 50), True, 0)
        protocol.update({Hand.RIGHT: {INDEX: UNSEEN}}, True, 500)
        with pytest.raises(LandmarkContractError) as exc:
            protocol.tick(1000)
        assert "pose hold decision" in str(exc.value)

    def test_reset(self):
        protocol = self.make()
        protocol.update(self.at(50, 50), True, 0)
        protocol.reset()
        assert protocol.state is PoseState.IDLE
        assert protocol.tick(1000) is None


class TestPointPoseListener:
    def make(self, **kwargs):
        return PointPoseListener(PointPoseConfig(
            name="select-a",
            region=Rect(0, 0, 200, 200),
            selection_keys=("a",),
            **kwargs,
        ))

    def test_hold_selects(self):
        listener = self.make()
        events = run(listener, steady(range(0, 1100, 100), lambda t: frame(t, right=hand({INDEX: (100, 100)}))))
        assert len(events) == 1
        assert isinstance(events[0], SelectionEvent)
        assert events[0].keys == ("a",)
        assert events[0].timestamp == 1000

    def test_hold_and_cooldown_end_to_end(self):
        listener = self.make()
        frames = steady(range(0, 4200, 100), lambda t: frame(t, right=hand({INDEX: (100, 100)})))
        events = run(listener, frames)
        # Confirm at 1000, cooldown until 3000, second hold from 3100 confirms at 4100.
        assert [e.timestamp for e in events] == [1000, 4100]

    def test_leaving_region_aborts(self):
        listener = self.make()
        frames = [frame(t, right=hand({INDEX: (100, 100)})) for t in range(0, 500, 100)]
        frames.append(frame(500, right=hand({INDEX: (300, 100)})))
        frames += [frame(t, right=hand({INDEX: (100, 100)})) for t in range(600, 1200, 100)]
        events = run(listener, frames)
        assert events == []
        assert listener.state is PoseState.HOLDING

    def test_missing_hand_aborts(self):
        listener = self.make()
        frames = [frame(0, right=hand({INDEX: (100, 100)})), frame(500), frame(1000, right=hand({INDEX: (100, 100)}))]
        assert run(listener, frames) == []

    def test_wrong_label_ignored(self):
        listener = self.make()
        frames = steady(range(0, 1100, 100), lambda t: frame(t, right=hand({INDEX: (100, 100)}, "open-hand")))
        assert run(listener, frames) == []

    def test_non_dominant_hand_ignored(self):
        listener = self.make()
        frames = steady(range(0, 1100, 100), lambda t: frame(t, left=hand({INDEX: (100, 100)})))
        assert run(listener, frames) == []

    def test_reset_publishes_cleared(self):
        listener = self.make()
        events = []
        listener.on_event(events.append)
        listener.reset()
        assert events[0].cleared

    def test_disabled(self):
        listener = self.make(enabled=False)
        assert run(listener, steady(range(0, 1100, 100), lambda t: frame(t, right=hand({INDEX: (100, 100)})))) == []

    def test_stroke_mode_selects_on_circle(self):
        listener = self.make(listener_mode="stroke")
        touch = lambda t: frame(
            t,
            right=hand({INDEX: (100, 100), THUMB: (150, 150)}),
            left=hand({INDEX: (300, 100), THUMB: (155, 150)}),
        )
        frames = [touch(0)]
        for i in range(30):
            a = -math.pi / 2 - 2 * math.pi * i / 29
            frames.append(frame(33 * (i + 1), right=hand({INDEX: (100 + 60 * math.cos(a), 100 + 60 * math.sin(a))})))
        frames.append(touch(1100))
        events = run(listener, frames)
        assert len(events) == 1
        assert events[0].keys == ("a",)


class TestRectPoseListener:
    def make(self, **kwargs):
        return RectPoseListener(RectPoseConfig(name="frame", region=Rect(0, 0, 1280, 720), **kwargs))

    def hands_at(self, t, left_index, left_thumb, right_index, right_thumb, label="l"):
        return frame(
            t,
            right=hand({INDEX: right_index, THUMB: right_thumb}, f"foreshadowing-right-{label}"),
            left=hand({INDEX: left_index, THUMB: left_thumb}, f"foreshadowing-left-{label}"),
        )

    def test_rectangle_area(self):
        listener = self.make()
        frames = [self.hands_at(t, (100, 100), (100, 300), (500, 100), (500, 300)) for t in range(0, 1100, 100)]
        events = run(listener, frames)
        assert len(events) == 1
        assert events[0].shape is ForeshadowShape.RECTANGLE
        assert events[0].area == Rect(100, 100, 400, 200)

    def test_one_hand_drifting_rejects(self):
        listener = self.make()
        frames = [self.hands_at(0, (100, 100), (100, 300), (500, 100), (500, 300))]
        frames += [self.hands_at(t, (100, 100), (100, 300), (540, 100), (540, 300)) for t in range(100, 1100, 100)]
        assert run(listener, frames) == []

    def test_needs_both_hands(self):
        listener = self.make()
        frames = [
            frame(t, right=hand({INDEX: (500, 100), THUMB: (500, 300)}, "foreshadowing-right-l"))
            for t in range(0, 1100, 100)
        ]
        assert run(listener, frames) == []

    def test_circle_mode(self):
        listener = self.make(shape="circle")
        frames = [self.hands_at(t, (400, 100), (400, 300), (410, 100), (410, 300), "c") for t in range(0, 1100, 100)]
        events = run(listener, frames)
        assert len(events) == 1
        assert events[0].area == Circle(410, 200, 100)

    def test_circle_mode_rejects_open_frame(self):
        listener = self.make(shape="circle")
        frames = [self.hands_at(t, (100, 100), (100, 300), (500, 100), (500, 300), "c") for t in range(0, 1100, 100)]
        assert run(listener, frames) == []
        # No cooldown after a rejected shape.
        assert listener.state is PoseState.IDLE

    def test_cleared_event(self):
        listener = self.make()
        events = []
        listener.on_event(events.append)
        listener.reset()
        assert events[0].area is None


class TestRangePoseListener:
    def make(self, **kwargs):
        return RangePoseListener(RangePoseConfig(name="range", region=Rect(0, 0, 1280, 720), **kwargs))

    def open_hands(self, t, left_x, right_x):
        return frame(
            t,
            right=hand({MIDDLE: (right_x, 420)}, "open-hand"),
            left=hand({MIDDLE: (left_x, 400)}, "open-hand"),
        )

    def test_range_area_and_playback_config(self):
        listener = self.make()
        events = run(listener, [self.open_hands(t, 300, 700) for t in range(0, 1100, 100)])
        assert len(events) == 1
        assert events[0].shape is ForeshadowShape.RANGE
        assert events[0].area == Rect(300, 0, 400, 720)

        playback = listener.playback_config()
        assert playback.emit_range == (300, 700)
        assert playback.region.y == 400

    def test_canvas_height_override(self):
        listener = self.make(canvas_height=1080)
        events = run(listener, [self.open_hands(t, 700, 300) for t in range(0, 1100, 100)])
        assert events[0].area == Rect(300, 0, 400, 1080)

    def test_missing_finger_is_contract_error(self):
        listener = self.make()
        with pytest.raises(LandmarkContractError):
            listener.range_area({Hand.LEFT: {int(MIDDLE): TrackedPoint(1, 1)}})

    def test_reset_clears_range(self):
        listener = self.make()
        run(listener, [self.open_hands(t, 300, 700) for t in range(0, 1100, 100)])
        listener.reset()
        assert listener.playback_range is None
        assert listener.playback_config() is None


class TestThumbPoseListener:
    def make(self):
        return ThumbPoseListener(ThumbPoseConfig(
            name="thumbs",
            region=Rect(0, 0, 200, 200),
            selection_keys=("b",),
            reset_pause_duration=2000,
        ))

    def touching(self, t, x=100):
        return frame(t, right=hand({THUMB: (x, 100)}), left=hand({THUMB: (x + 10, 100)}))

    def test_touch_selects_with_pause(self):
        listener = self.make()
        events = run(listener, [self.touching(0), self.touching(500), frame(2000), self.touching(2100)])
        assert [e.timestamp for e in events] == [0, 2100]
        assert events[0].keys == ("b",)

    def test_outside_region(self):
        assert run(self.make(), [self.touching(0, x=400)]) == []

    def test_apart(self):
        f = frame(0, right=hand({THUMB: (50, 100)}), left=hand({THUMB: (150, 100)}))
        assert run(self.make(), [f]) == []
