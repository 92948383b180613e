"""Tests for the engine frame loop and listener registry."""

import pytest

from storygesture.config import EngineConfig, HighlightConfig, PointPoseConfig, StrokeConfig
from storygesture.engine import LISTENER_TYPES, GestureEngine, build_listener
from storygesture.events import HighlightEvent, SelectionEvent
from storygesture.frames import Hand, HandData, HandLandmark, LandmarkFrame, TrackedPoint
from storygesture.geometry import Rect
from storygesture.highlight import HighlightListener
from storygesture.pose import PointPoseListener, PoseState
from storygesture.stroke import StrokeListener
from storygesture.unistroke import UnistrokeRecognizer

INDEX = HandLandmark.INDEX_FINGER_TIP


def pointing(t, x=100, y=100):
    return LandmarkFrame(hands={Hand.RIGHT: HandData.from_points({INDEX: (x, y)}, ["pointing"])}, timestamp=t)


def make_engine(**kwargs):
    return GestureEngine([
        build_listener(PointPoseConfig(name="select", region=Rect(0, 0, 200, 200), selection_keys=("a",))),
        build_listener(HighlightConfig(name="hl", region=Rect(0, 0, 200, 200))),
    ], **kwargs)


class TestBuildListener:
    def test_every_kind_has_a_listener(self):
        from storygesture.config import CONFIG_TYPES
        assert set(LISTENER_TYPES) == set(CONFIG_TYPES)

    def test_kind_dispatch(self):
        assert isinstance(build_listener(HighlightConfig(region=Rect(0, 0, 1, 1))), HighlightListener)
        assert isinstance(build_listener(StrokeConfig(region=Rect(0, 0, 1, 1))), StrokeListener)

    def test_shared_recognizer(self):
        recognizer = UnistrokeRecognizer.with_defaults(["circle"])
        listener = build_listener(StrokeConfig(region=Rect(0, 0, 1, 1)), recognizer)
        assert listener.recognizer is recognizer

    def test_wrong_config_type(self):
        with pytest.raises(TypeError):
            PointPoseListener(HighlightConfig(region=Rect(0, 0, 1, 1)))


class TestGestureEngine:
    def test_process_frame_returns_events(self):
        engine = make_engine()
        events = engine.process_frame(pointing(0))
        assert [type(e) for e in events] == [HighlightEvent]

    def test_hold_emits_selection_in_same_frame(self):
        engine = make_engine()
        selections = []
        for t in range(0, 1100, 100):
            selections += [e for e in engine.process_frame(pointing(t)) if isinstance(e, SelectionEvent)]
        assert len(selections) == 1
        assert selections[0].timestamp == 1000

    def test_subscribers_and_errors(self):
        engine = make_engine()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        engine.on_event(broken)
        engine.on_event(seen.append)
        engine.process_frame(pointing(0))
        assert len(seen) == 1

    def test_explicit_now(self):
        engine = make_engine()
        events = engine.process_frame(pointing(0), now=5000)
        assert events[0].timestamp == 5000

    def test_tick_without_frames(self):
        engine = make_engine()
        engine.process_frame(pointing(0))
        events = engine.tick(1000)
        # Only the snapshot frame was seen, so drift is zero.
        assert [type(e) for e in events] == [SelectionEvent]

    def test_registry(self):
        engine = make_engine()
        assert engine.listener_names == ["select", "hl"]
        assert engine.get_listener("hl").kind == "highlight"
        with pytest.raises(ValueError):
            engine.add_listener(build_listener(HighlightConfig(name="hl", region=Rect(0, 0, 1, 1))))
        assert engine.remove_listener("hl")
        assert not engine.remove_listener("hl")
        assert engine.listener_names == ["select"]

    def test_disabled_listener_skipped(self):
        engine = make_engine()
        engine.get_listener("hl").enabled = False
        assert engine.process_frame(pointing(0)) == []

    def test_disabled_listener_timer_does_not_fire(self):
        engine = make_engine()
        engine.process_frame(pointing(0))
        engine.get_listener("select").enabled = False
        assert engine.tick(1200) == []
        assert engine.process_frame(pointing(1300)) == [
            HighlightEvent(position=(100.0, 100.0), listener="hl", timestamp=1300),
        ]

    def test_nan_landmark_is_not_an_error(self):
        engine = make_engine()
        frame = LandmarkFrame(
            hands={Hand.RIGHT: HandData.from_points({INDEX: (float("nan"), 10)}, ["pointing"])},
            timestamp=0,
        )
        assert engine.process_frame(frame) == []
        assert engine.get_listener("select").state is PoseState.IDLE

    def test_nan_landmark_aborts_hold(self):
        engine = make_engine()
        engine.process_frame(pointing(0))
        lost = HandData(landmarks={INDEX: TrackedPoint(float("nan"), 100.0)}, gestures=frozenset({"pointing"}))
        nan_frame = LandmarkFrame(
            hands={Hand.RIGHT: lost},
            timestamp=500,
        )
        engine.process_frame(nan_frame)
        assert not engine.get_listener("select").timer.active
        assert engine.tick(1000) == []

    def test_reset_dispatches_cleared(self):
        engine = make_engine()
        events = engine.reset()
        assert {type(e) for e in events} == {SelectionEvent, HighlightEvent}

    def test_stats(self):
        engine = make_engine()
        for t in range(0, 300, 100):
            engine.process_frame(pointing(t))
        stats = engine.stats()
        assert stats.total_frames == 3
        assert stats.events_by_type == {"highlight": 3}
        assert "total" in stats.profiler_summary
        assert len(stats.listeners) == 2

    def test_profiling_disabled(self):
        engine = make_engine(enable_profiling=False)
        engine.process_frame(pointing(0))
        assert engine.stats().profiler_summary == {}

    def test_from_config(self):
        config = EngineConfig.from_dict({"listeners": [
            {"kind": "highlight", "region": {"x": 0, "y": 0, "width": 200, "height": 200}},
            {"kind": "radial", "region": {"x": 0, "y": 0, "radius": 100}},
        ]})
        engine = GestureEngine.from_config(config)
        assert engine.listener_names == ["highlight", "radial"]

    def test_close(self):
        engine = make_engine()
        engine.close()
        assert engine.listeners == []
