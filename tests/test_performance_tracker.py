"""Tests for rolling provider performance statistics."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from marketscout.intelligence.performance import PerformanceTracker


class TestPerformanceTracker:
    """Test cumulative update math."""

    def test_success_then_failure(self, tracker):
        tracker.record("crewai", 2.0, success=True)
        record = tracker.record("crewai", 4.0, success=False)

        assert record.total_runs == 2
        assert record.successful_runs == 1
        assert record.failed_runs == 1
        assert record.completion_rate_pct == 50.0
        assert record.avg_run_time_seconds == pytest.approx(3.0)

    def test_record_created_on_first_update(self, tracker):
        assert tracker.get("autogen") is None

        tracker.record("autogen", 1.5, success=True)

        record = tracker.get("autogen")
        assert record.total_runs == 1
        assert record.avg_run_time_seconds == 1.5
        assert record.completion_rate_pct == 100.0

    def test_seeded_record_starts_at_full_rates(self, tracker):
        tracker.ensure("langgraph")
        record = tracker.get("langgraph")

        assert record.total_runs == 0
        assert record.completion_rate_pct == 100.0
        assert record.api_success_rate_pct == 100.0

    def test_api_success_rate_is_cumulative(self, tracker):
        tracker.record("squidai", 1.0, success=True)
        tracker.record("squidai", 1.0, success=False, api_success=False)
        tracker.record("squidai", 1.0, success=False, api_success=True)
        record = tracker.record("squidai", 1.0, success=True)

        assert record.api_success_rate_pct == pytest.approx(75.0)
        assert record.completion_rate_pct == 50.0

    def test_get_returns_snapshot(self, tracker):
        tracker.record("crewai", 1.0, success=True)
        snapshot = tracker.get("crewai")
        snapshot.total_runs = 99

        assert tracker.get("crewai").total_runs == 1

    def test_all_lists_every_provider(self, tracker):
        tracker.ensure("a")
        tracker.record("b", 1.0, success=True)

        assert sorted(r.provider_name for r in tracker.all()) == ["a", "b"]


class TestConcurrentUpdates:
    """Test that same-key updates are not lost."""

    def test_no_lost_updates(self):
        tracker = PerformanceTracker()
        runs = 400

        def run(i):
            tracker.record("crewai", 1.0, success=i % 4 != 0)
            tracker.record("autogen", 2.0, success=True)

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(run, range(runs)))

        crewai = tracker.get("crewai")
        assert crewai.total_runs == runs
        assert crewai.successful_runs == runs * 3 // 4
        assert crewai.completion_rate_pct == pytest.approx(75.0)
        assert crewai.avg_run_time_seconds == pytest.approx(1.0)
        assert tracker.get("autogen").total_runs == runs
