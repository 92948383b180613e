"""Tests for the rotational playback listener."""

import math

import pytest

from storygesture.config import RadialConfig
from storygesture.events import PlaybackEvent
from storygesture.frames import Hand, HandData, HandLandmark, LandmarkFrame, TrackedPoint
from storygesture.geometry import Rect
from storygesture.radial import RadialMode, RadialPlaybackListener

INDEX = HandLandmark.INDEX_FINGER_TIP


def at_angle(t, degrees, hand=Hand.RIGHT, radius=100):
    a = math.radians(degrees)
    point = (200 + radius * math.cos(a), 200 + radius * math.sin(a))
    return LandmarkFrame(hands={hand: HandData.from_points({INDEX: point}, ["pointing"])}, timestamp=t)


def lap(start_t, angles=(45, 135, 225, 315)):
    return [at_angle(start_t + 100 * i, a) for i, a in enumerate(angles)]


def run(listener, frames):
    events = []
    listener.on_event(events.append)
    for f in frames:
        listener.process_frame(f)
        listener.tick(f.timestamp)
    return events


def make(mode="normal", **kwargs):
    return RadialPlaybackListener(RadialConfig(name="radial", region=Rect(0, 0, 400, 400), mode=mode, **kwargs))


class TestAngle:
    @pytest.mark.parametrize("point,expected", [
        ((300, 200), 0.0),
        ((200, 300), 90.0),
        ((100, 200), 180.0),
        ((200, 100), 270.0),
    ])
    def test_clockwise_on_screen(self, point, expected):
        assert make().angle_from_center(TrackedPoint(*point)) == pytest.approx(expected)


class TestNormalMode:
    def test_full_lap_pulses(self):
        listener = make()
        events = run(listener, lap(0) + [at_angle(400, 45)])
        assert len(events) == 1
        assert events[0] == PlaybackEvent(kind="continuous", value=True, listener="radial", timestamp=400)
        assert listener.rotations == 1
        assert listener.angle_stack == [pytest.approx(45)]

    def test_two_laps(self):
        listener = make()
        events = run(listener, lap(0) + lap(400) + [at_angle(800, 45)])
        assert len(events) == 2
        assert listener.rotations == 2

    def test_skipped_quadrant_does_not_count(self):
        listener = make()
        events = run(listener, lap(0, angles=(45, 225, 315)) + [at_angle(300, 45)])
        assert events == []
        assert listener.angle_stack == [pytest.approx(45)]

    def test_counter_clockwise_does_not_count(self):
        listener = make()
        assert run(listener, lap(0, angles=(45, 315, 225, 135)) + [at_angle(400, 45)]) == []

    def test_leaving_region_resets(self):
        listener = make()
        run(listener, lap(0, angles=(45, 135)))
        run(listener, [at_angle(200, 45, radius=300)])
        assert listener.angle_stack == []
        assert not listener.timer.active

    def test_idle_timeout_clears(self):
        listener = make(idle_timeout=1000)
        run(listener, lap(0, angles=(45, 135)))
        listener.tick(1100)
        assert listener.angle_stack == []
        assert listener.rotations == 0

    def test_progress_rearms_idle_timer(self):
        listener = make(idle_timeout=1000)
        run(listener, [at_angle(0, 45), at_angle(900, 135), at_angle(1800, 225)])
        listener.tick(1900)
        assert len(listener.angle_stack) == 3

    def test_left_hand_fallback(self):
        listener = make()
        frames = [at_angle(100 * i, a, hand=Hand.LEFT) for i, a in enumerate((45, 135, 225, 315, 45))]
        assert len(run(listener, frames)) == 1


class TestTrackingMode:
    def test_scrubs_after_first_lap(self):
        listener = make(mode="tracking")
        events = run(listener, lap(0) + [at_angle(400, 45), at_angle(500, 90), at_angle(600, 270)])
        assert [e.kind for e in events] == ["discrete", "discrete"]
        assert events[0].value == pytest.approx(0.25)
        assert events[1].value == pytest.approx(0.75)

    def test_idle_does_not_reset_after_lap(self):
        listener = make(mode="tracking", idle_timeout=500)
        run(listener, lap(0) + [at_angle(400, 45)])
        listener.tick(5000)
        assert listener.rotations == 1

    def test_set_mode(self):
        listener = make()
        listener.set_mode("tracking")
        assert listener.mode is RadialMode.TRACKING
