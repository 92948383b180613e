"""Tests for the stage profiler."""

import time

from storygesture.profiler import StageProfiler


class TestStageProfiler:
    def test_stage_timing(self):
        profiler = StageProfiler()
        with profiler.stage("listeners"):
            time.sleep(0.001)

        stats = profiler.stats("listeners")
        assert stats.calls == 1
        assert stats.avg_ms >= 0.5

    def test_custom_stage(self):
        profiler = StageProfiler()
        for _ in range(10):
            with profiler.stage("replay"):
                pass
        assert profiler.stats("replay").calls == 10

    def test_summary_only_lists_used_stages(self):
        profiler = StageProfiler()
        with profiler.stage("timers"):
            pass
        summary = profiler.summary()
        assert list(summary) == ["timers"]
        assert set(summary["timers"]) == {"avg_ms", "min_ms", "max_ms", "p95_ms", "calls"}

    def test_records_when_body_raises(self):
        profiler = StageProfiler()
        try:
            with profiler.stage("dispatch"):
                raise ValueError("x")
        except ValueError:
            pass
        assert profiler.stats("dispatch").calls == 1

    def test_window(self):
        profiler = StageProfiler(window_size=5)
        for _ in range(20):
            with profiler.stage("total"):
                pass
        stats = profiler.stats("total")
        assert stats.calls == 20

    def test_disabled(self):
        profiler = StageProfiler()
        profiler.enabled = False
        with profiler.stage("listeners"):
            pass
        assert profiler.stats("listeners") is None

    def test_reset(self):
        profiler = StageProfiler()
        with profiler.stage("listeners"):
            pass
        profiler.reset()
        assert profiler.stats("listeners") is None
