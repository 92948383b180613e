"""Tests for the tick-driven one-shot timer."""

import pytest

from storygesture.timers import ManualClock, Timer


class TestTimer:
    def test_fires_once_at_deadline(self):
        fired = []
        timer = Timer("t")
        timer.start(0, 100, lambda: fired.append(True))
        assert not timer.tick(50)
        assert timer.tick(100)
        assert not timer.tick(200)
        assert fired == [True]
        assert not timer.active

    def test_cancel(self):
        fired = []
        timer = Timer()
        timer.start(0, 100, lambda: fired.append(True))
        timer.cancel()
        timer.tick(500)
        assert fired == []

    def test_restart_replaces_deadline(self):
        fired = []
        timer = Timer()
        timer.start(0, 100, lambda: fired.append("a"))
        timer.start(50, 100, lambda: fired.append("b"))
        timer.tick(120)
        assert fired == []
        timer.tick(150)
        assert fired == ["b"]

    def test_callback_may_rearm(self):
        timer = Timer()
        fired = []

        def again():
            fired.append(len(fired))
            if len(fired) < 3:
                timer.start(timer_now[0], 10, again)

        timer_now = [0]
        timer.start(0, 10, again)
        for now in (10, 20, 30, 40):
            timer_now[0] = now
            timer.tick(now)
        assert fired == [0, 1, 2]

    def test_on_tick_before_deadline(self):
        elapsed = []
        timer = Timer()
        timer.start(100, 50, on_tick=elapsed.append)
        timer.tick(110)
        timer.tick(130)
        timer.tick(150)
        assert elapsed == [10, 30]

    def test_progress_and_remaining(self):
        timer = Timer()
        assert timer.progress(0) == 0.0
        timer.start(0, 200)
        assert timer.progress(50) == pytest.approx(0.25)
        assert timer.remaining(50) == pytest.approx(150)
        assert timer.deadline == 200

    def test_negative_duration(self):
        with pytest.raises(ValueError):
            Timer().start(0, -1)


class TestManualClock:
    def test_advance(self):
        clock = ManualClock(10)
        assert clock() == 10
        assert clock.advance(5) == 15
