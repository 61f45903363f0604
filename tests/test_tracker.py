# tests/test_tracker.py
"""
Tests for the flake tracker.

Tests cover:
- Classification paths (stable, flaky, regression)
- Rolling window eviction
- Quarantine lifecycle and expiry escalation
- Weekly flake rate
- Concurrent recording
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from flakegate.errors import MissingMetadataError, QuarantineError
from flakegate.flakes import (
    Classification,
    CollectingNotifier,
    FlakeClassificationView,
    FlakeTracker,
)
from flakegate.models import RunRecord, Stage, TestOutcome, TestStatus


class TestClassification:
    """Tests for classify()."""

    def test_unknown_test_is_stable(self, tracker):
        assert tracker.classify("never::seen") == Classification.STABLE

    def test_all_pass_is_stable(self, tracker, record_history):
        record_history("t::a", ["passed", "passed", "passed"])
        assert tracker.classify("t::a") == Classification.STABLE
        assert not tracker.is_regression("t::a")

    def test_alternating_is_flaky(self, tracker, record_history):
        record_history("t::a", ["passed", "failed", "passed"])
        assert tracker.classify("t::a") == Classification.FLAKY

    def test_all_fail_is_regression_not_flaky(self, tracker, record_history):
        """Consistent failure is a regression, never a flake."""
        record_history("t::a", ["failed", "failed", "failed"])
        assert tracker.classify("t::a") == Classification.STABLE
        assert tracker.is_regression("t::a")

    def test_skips_ignored(self, tracker, record_history):
        """Skipped outcomes neither pass nor fail."""
        record_history("t::a", ["failed", "skipped", "failed"])
        assert tracker.classify("t::a") == Classification.STABLE
        assert tracker.is_regression("t::a")

    def test_flaky_recovers_when_failures_age_out(self, tracker, record_history, clock):
        """stable -> flaky -> stable as the window moves on."""
        record_history("t::a", ["failed", "passed"])
        assert tracker.classify("t::a") == Classification.FLAKY

        clock.advance(days=8)
        tracker.record(RunRecord(
            stage=Stage.UNIT,
            outcomes=(TestOutcome(test_id="t::a", status=TestStatus.PASSED, timestamp=clock()),),
            started_at=clock(),
        ))
        assert tracker.classify("t::a") == Classification.STABLE


class TestWindow:
    """Tests for rolling window bounds."""

    def test_window_size_bound(self, clock, notifier):
        tracker = FlakeTracker(window_size=3, notifier=notifier, clock=clock)
        for i, status in enumerate(["failed", "passed", "passed", "passed"]):
            at = clock() - timedelta(minutes=10 - i)
            tracker.record(RunRecord(
                stage=Stage.UNIT,
                outcomes=(TestOutcome(test_id="t::a", status=TestStatus(status), timestamp=at),),
            ))
        state = tracker.state("t::a")
        assert len(state.window) == 3
        assert all(o.passed for o in state.window)
        assert tracker.classify("t::a") == Classification.STABLE

    def test_old_outcomes_evicted(self, tracker, clock):
        old = clock() - timedelta(days=10)
        tracker.record(RunRecord(
            stage=Stage.UNIT,
            outcomes=(TestOutcome(test_id="t::a", status=TestStatus.FAILED, timestamp=old),),
        ))
        assert tracker.state("t::a").window == []

    def test_state_is_a_copy(self, tracker, record_history):
        record_history("t::a", ["passed"])
        state = tracker.state("t::a")
        state.window.clear()
        assert len(tracker.state("t::a").window) == 1


class TestQuarantine:
    """Tests for the quarantine lifecycle."""

    def test_quarantine_requires_all_metadata(self, tracker, clock):
        """Missing fields are rejected with no state change."""
        with pytest.raises(MissingMetadataError) as exc_info:
            tracker.quarantine("t::a", owner="dana", ticket=None, expires_at=None)
        assert exc_info.value.missing == ["ticket", "expires_at"]
        assert tracker.classify("t::a") == Classification.STABLE
        assert "t::a" not in tracker

    def test_blank_owner_is_missing(self, tracker, clock):
        with pytest.raises(MissingMetadataError) as exc_info:
            tracker.quarantine("t::a", owner="  ", ticket="QA-1", expires_at=clock() + timedelta(days=1))
        assert exc_info.value.missing == ["owner"]

    def test_expiry_must_be_future(self, tracker, clock):
        with pytest.raises(QuarantineError):
            tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock())

    def test_quarantine_survives_records(self, tracker, record_history, clock):
        """Quarantine holds regardless of outcomes until expiry."""
        record_history("t::a", ["passed", "failed"])
        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(days=2))
        for _ in range(5):
            record_history("t::a", ["passed", "passed", "failed"])
            assert tracker.classify("t::a") == Classification.QUARANTINED

    def test_expiry_reclassifies_and_escalates_once(self, tracker, record_history, clock, notifier):
        """First classify() after expiry reverts the test and escalates exactly once."""
        record_history("t::a", ["passed", "failed", "passed"])
        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(days=1))
        assert tracker.classify("t::a") == Classification.QUARANTINED
        assert notifier.events == []

        clock.advance(days=1, seconds=1)
        # Recording alone never escalates
        tracker.record(RunRecord(
            stage=Stage.UNIT,
            outcomes=(TestOutcome(test_id="t::a", status=TestStatus.PASSED, timestamp=clock()),),
        ))
        assert notifier.events == []

        assert tracker.classify("t::a") == Classification.FLAKY
        assert tracker.classify("t::a") == Classification.FLAKY
        assert len(notifier.events) == 1
        event = notifier.events[0]
        assert event.test_id == "t::a"
        assert event.owner == "dana"
        assert event.ticket == "QA-1"
        assert event.classification_after == Classification.FLAKY
        assert tracker.escalations() == notifier.events

    def test_expiry_to_stable(self, tracker, record_history, clock, notifier):
        record_history("t::a", ["passed", "passed"])
        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(hours=1))
        clock.advance(hours=2)
        assert tracker.classify("t::a") == Classification.STABLE
        assert notifier.events[0].classification_after == Classification.STABLE

    def test_release_does_not_escalate(self, tracker, clock, notifier):
        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(days=1))
        assert tracker.release("t::a") is True
        assert tracker.release("t::a") is False
        assert tracker.classify("t::a") == Classification.STABLE
        assert notifier.events == []

    def test_release_of_lapsed_quarantine_escalates(self, tracker, record_history, clock, notifier):
        """Releasing after expiry still reports the unresolved quarantine once."""
        record_history("t::a", ["passed", "failed"])
        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(hours=1))
        clock.advance(hours=2)

        assert tracker.release("t::a") is True
        assert [e.test_id for e in notifier.events] == ["t::a"]
        assert notifier.events[0].classification_after == Classification.FLAKY

        assert tracker.classify("t::a") == Classification.FLAKY
        assert len(notifier.events) == 1

    def test_empty_notifier_is_kept(self, clock):
        """A notifier with nothing collected yet is still the one used."""
        notifier = CollectingNotifier()
        tracker = FlakeTracker(notifier=notifier, clock=clock)
        assert tracker.notifier is notifier

        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(hours=1))
        clock.advance(hours=2)
        tracker.classify("t::a")
        assert len(notifier) == 1

    def test_quarantined_lists_entries(self, tracker, clock):
        tracker.quarantine("t::b", owner="dana", ticket="QA-2", expires_at=clock() + timedelta(days=1))
        tracker.quarantine("t::a", owner="lee", ticket="QA-1", expires_at=clock() + timedelta(days=1))
        assert [e.test_id for e in tracker.quarantined()] == ["t::a", "t::b"]

    def test_failing_notifier_queues_event(self, clock, caplog):
        """Notifier failures are logged and the event is kept."""

        class BrokenNotifier:
            def notify(self, event):
                raise RuntimeError("pager down")

        tracker = FlakeTracker(notifier=BrokenNotifier(), clock=clock)
        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(hours=1))
        clock.advance(hours=2)

        assert tracker.classify("t::a") == Classification.STABLE
        pending = tracker.drain_undelivered()
        assert [e.test_id for e in pending] == ["t::a"]
        assert tracker.drain_undelivered() == []
        assert "pager down" in caplog.text


class TestWeeklyFlakeRate:
    """Tests for weekly_flake_rate()."""

    def test_empty_tracker(self, tracker):
        assert tracker.weekly_flake_rate() == 0.0

    def test_three_of_hundred(self, tracker, clock):
        """3 flaky tests among 100 seen this week gives 0.03."""
        for run_index, failing in enumerate([(), ("t::000", "t::001", "t::002")]):
            at = clock() - timedelta(hours=2 - run_index)
            outcomes = tuple(
                TestOutcome(
                    test_id=f"t::{i:03d}",
                    status=TestStatus.FAILED if f"t::{i:03d}" in failing else TestStatus.PASSED,
                    timestamp=at,
                )
                for i in range(100)
            )
            tracker.record(RunRecord(stage=Stage.UNIT, outcomes=outcomes, started_at=at))

        assert tracker.weekly_flake_rate() == pytest.approx(0.03)
        assert tracker.snapshot().weekly_flake_rate() == pytest.approx(0.03)

    def test_quarantined_counts(self, tracker, record_history, clock):
        record_history("t::a", ["passed"])
        record_history("t::b", ["passed"])
        tracker.quarantine("t::a", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(days=1))
        assert tracker.weekly_flake_rate() == pytest.approx(0.5)

    def test_tests_not_seen_this_week_excluded(self, clock, notifier):
        tracker = FlakeTracker(window_days=30, notifier=notifier, clock=clock)
        old = clock() - timedelta(days=10)
        for status in ("passed", "failed"):
            tracker.record(RunRecord(
                stage=Stage.UNIT,
                outcomes=(TestOutcome(test_id="t::old", status=TestStatus(status), timestamp=old),),
            ))
        tracker.record(RunRecord(
            stage=Stage.UNIT,
            outcomes=(TestOutcome(test_id="t::new", status=TestStatus.PASSED, timestamp=clock()),),
        ))
        assert tracker.classify("t::old") == Classification.FLAKY
        assert tracker.weekly_flake_rate() == 0.0


class TestSnapshot:
    """Tests for snapshot()."""

    def test_snapshot_contents(self, tracker, record_history, clock):
        record_history("t::flaky", ["passed", "failed"])
        record_history("t::broken", ["failed", "failed"])
        record_history("t::fine", ["passed"])
        snapshot = tracker.snapshot()

        assert isinstance(snapshot, FlakeClassificationView)
        assert snapshot.classify("t::flaky") == Classification.FLAKY
        assert snapshot.classify("t::broken") == Classification.STABLE
        assert snapshot.regressions == frozenset({"t::broken"})
        assert snapshot.counts() == {"stable": 2, "flaky": 1, "quarantined": 0}
        assert snapshot.weekly_flake_rate() == pytest.approx(1 / 3)

    def test_snapshot_is_frozen_in_time(self, tracker, record_history):
        record_history("t::a", ["passed"])
        snapshot = tracker.snapshot()
        record_history("t::a", ["failed"])
        assert snapshot.classify("t::a") == Classification.STABLE
        assert tracker.classify("t::a") == Classification.FLAKY


@pytest.mark.concurrency
class TestConcurrency:
    """Tests for concurrent recording."""

    def test_parallel_records(self, tracker, clock):
        """Concurrent runs over shared and distinct tests lose no outcomes."""

        def make(worker: int) -> RunRecord:
            at = clock() - timedelta(minutes=worker)
            outcomes = [
                TestOutcome(test_id=f"shared::{i}", status=TestStatus.PASSED, timestamp=at)
                for i in range(10)
            ]
            outcomes += [
                TestOutcome(test_id=f"worker{worker}::{i}", status=TestStatus.FAILED, timestamp=at)
                for i in range(10)
            ]
            return RunRecord(stage=Stage.UNIT, outcomes=tuple(outcomes))

        runs = [make(w) for w in range(16)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(tracker.record, runs))

        assert len(tracker) == 10 + 16 * 10
        assert all(len(tracker.state(f"shared::{i}").window) == 16 for i in range(10))
        assert tracker.is_regression("worker3::4")
