# tests/test_pipeline.py
"""
Tests for the staged quality pipeline.

Tests cover:
- Stage ordering and skipping
- Fail-fast behavior
- Ingestion errors per stage
- Dry runs
- Escalations surfaced in the report
"""

from datetime import timedelta, timezone

import pytest

from flakegate.core.config import GateConfig
from flakegate.errors import MalformedReportError
from flakegate.flakes import FlakeTracker
from flakegate.gates.models import GateStatus, ReasonCode
from flakegate.pipeline import QualityPipeline
from flakegate.models import Stage


@pytest.fixture
def pipeline(tracker):
    return QualityPipeline(tracker=tracker, config=GateConfig())


def _report(sample_report, **overrides):
    report = {k: v for k, v in sample_report.items() if k != "stage"}
    report.update(overrides)
    return report


class TestQualityPipeline:
    """Tests for QualityPipeline.run()."""

    def test_all_stages_pass(self, pipeline, sample_report):
        report = pipeline.run({
            Stage.UNIT: _report(sample_report),
            "integration": _report(sample_report),
        })
        assert [s.stage for s in report.stages] == [
            Stage.UNIT, Stage.INTEGRATION, Stage.E2E, Stage.NIGHTLY,
        ]
        assert [s.status for s in report.stages] == [
            GateStatus.PASSED, GateStatus.PASSED, GateStatus.SKIPPED, GateStatus.SKIPPED,
        ]
        assert report.overall_status == GateStatus.PASSED
        assert report.metadata["stages_requested"] == ["unit", "integration"]

    def test_stage_injected_from_key(self, pipeline, sample_report):
        """Reports without a stage take it from their key."""
        report = pipeline.run({Stage.E2E: _report(sample_report)})
        assert report.stages[2].verdict.stage == Stage.E2E

    def test_fail_fast_skips_later_stages(self, pipeline, sample_report):
        report = pipeline.run({
            Stage.UNIT: _report(sample_report, coverage=50),
            Stage.INTEGRATION: _report(sample_report),
        })
        assert report.stages[0].status == GateStatus.FAILED
        assert report.stages[0].verdict.has(ReasonCode.COVERAGE_BELOW_THRESHOLD)
        assert report.stages[1].status == GateStatus.SKIPPED
        assert report.overall_status == GateStatus.FAILED

    def test_no_fail_fast_runs_everything(self, pipeline, sample_report):
        report = pipeline.run(
            {
                Stage.UNIT: _report(sample_report, coverage=50),
                Stage.INTEGRATION: _report(sample_report),
            },
            fail_fast=False,
        )
        assert report.stages[1].status == GateStatus.PASSED
        assert report.failed_stages == 1

    def test_malformed_stage_is_error(self, pipeline, sample_report):
        bad = _report(sample_report)
        bad["outcomes"] = [{"test_id": "", "status": "passed"}]
        report = pipeline.run({Stage.UNIT: bad, Stage.INTEGRATION: _report(sample_report)})
        assert report.stages[0].status == GateStatus.ERROR
        assert "outcomes[0]" in report.stages[0].error
        assert report.stages[1].status == GateStatus.SKIPPED
        assert report.overall_status == GateStatus.ERROR

    def test_records_into_tracker(self, pipeline, tracker, sample_report):
        pipeline.run({Stage.UNIT: _report(sample_report)})
        assert len(tracker) == 50

    def test_dry_run_records_nothing(self, tracker, sample_report):
        pipeline = QualityPipeline(tracker=tracker, dry_run=True)
        report = pipeline.run({Stage.UNIT: _report(sample_report)})
        assert report.passed
        assert len(tracker) == 0
        assert report.metadata["dry_run"] is True

    def test_flaky_history_fails_gate(self, pipeline, tracker, record_history, sample_report):
        """A history of flaky tests pushes the weekly rate over the ceiling."""
        record_history("tests/test_api.py::test_case_00", ["failed", "passed"])
        report = pipeline.run({Stage.UNIT: _report(sample_report)})
        verdict = report.stages[0].verdict
        assert verdict.messages == ["FLAKE_RATE_EXCEEDED: 0.02 > 0.01"]
        assert report.flake_rate == pytest.approx(0.02)

    def test_escalations_in_report(self, pipeline, tracker, clock, sample_report):
        tracker.quarantine("t::old", owner="dana", ticket="QA-1", expires_at=clock() + timedelta(minutes=30))
        clock.advance(hours=1)
        report = pipeline.run({Stage.UNIT: _report(sample_report)})
        assert [e["test_id"] for e in report.escalations] == ["t::old"]

    def test_no_reports(self, pipeline):
        report = pipeline.run({})
        assert report.overall_status == GateStatus.SKIPPED

    def test_empty_tracker_is_kept(self, clock):
        """A tracker with no history yet is the one that gets recorded into."""
        tracker = FlakeTracker(clock=clock)
        pipeline = QualityPipeline(tracker=tracker)
        assert pipeline.tracker is tracker

    def test_report_timestamp_is_utc(self, pipeline, sample_report):
        report = pipeline.run({Stage.UNIT: _report(sample_report)})
        assert report.timestamp.tzinfo == timezone.utc


class TestRunStage:
    """Tests for single-stage processing."""

    def test_run_stage_raises_on_malformed(self, pipeline):
        with pytest.raises(MalformedReportError):
            pipeline.run_stage({"stage": "unit", "outcomes": "everything passed"})

    def test_run_stage_accepts_run_record(self, pipeline, make_run):
        verdict = pipeline.run_stage(make_run(passed=3, failed=("t::a",)))
        assert verdict.messages == ["UNQUARANTINED_FAILURE: t::a"]
