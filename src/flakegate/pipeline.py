# src/flakegate/pipeline.py
# Staged quality-gate pipeline: unit -> integration -> e2e.
"""
Chains ingestion, flake recording and gate evaluation for each CI stage.

For every stage the pipeline:
1. ingests the raw report into a RunRecord
2. records it into the flake tracker (skipped in dry-run mode)
3. snapshots the tracker and evaluates the run against the gate

Stages run cheapest first. With fail_fast, the first failing stage
skips the rest.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from flakegate.core.config import GateConfig
from flakegate.errors import MalformedReportError
from flakegate.flakes.tracker import FlakeTracker
from flakegate.gates.evaluator import GateEvaluator
from flakegate.gates.models import GateStatus, PipelineReport, StageResult, Verdict
from flakegate.ingest.ingestor import ingest
from flakegate.models import RunRecord, Stage, utcnow

logger = logging.getLogger(__name__)

STAGE_ORDER: tuple[Stage, ...] = (Stage.UNIT, Stage.INTEGRATION, Stage.E2E, Stage.NIGHTLY)

RawReport = Mapping[str, Any]
StageReport = Union[RawReport, RunRecord]


class QualityPipeline:
    """Runs CI stages through the gate against one flake tracker."""

    def __init__(
        self,
        tracker: Optional[FlakeTracker] = None,
        config: Optional[GateConfig] = None,
        dry_run: bool = False,
    ):
        self.tracker = tracker if tracker is not None else FlakeTracker()
        self.evaluator = GateEvaluator(config)
        self.dry_run = dry_run

    @property
    def config(self) -> GateConfig:
        return self.evaluator.config

    def process(self, run: RunRecord) -> Verdict:
        """Record a run (unless dry-run) and evaluate it."""
        if not self.dry_run:
            self.tracker.record(run)
        snapshot = self.tracker.snapshot()
        return self.evaluator.evaluate(run, snapshot)

    def run_stage(self, report: StageReport) -> Verdict:
        """
        Ingest and process a single stage report.

        Raises:
            MalformedReportError: the report could not be ingested.
        """
        run = report if isinstance(report, RunRecord) else ingest(report)
        return self.process(run)

    def run(
        self,
        reports: Mapping[Union[Stage, str], StageReport],
        fail_fast: bool = True,
    ) -> PipelineReport:
        """
        Run stages in order and collect a report.

        Args:
            reports: Stage reports keyed by stage. Stages without a report
                are recorded as skipped.
            fail_fast: Skip remaining stages after the first failure.
        """
        timestamp = utcnow()
        by_stage = {Stage(k) if not isinstance(k, Stage) else k: v for k, v in reports.items()}
        escalations_before = len(self.tracker.escalations())

        results: list[StageResult] = []
        halted = False
        for stage in STAGE_ORDER:
            report = by_stage.get(stage)
            if report is None or halted:
                results.append(StageResult(stage=stage, status=GateStatus.SKIPPED))
                continue

            if isinstance(report, Mapping) and "stage" not in report:
                report = {**report, "stage": stage.value}

            try:
                verdict = self.run_stage(report)
            except MalformedReportError as e:
                logger.error("Stage %s report rejected: %s", stage.value, e)
                results.append(StageResult(stage=stage, status=GateStatus.ERROR, error=str(e)))
                halted = fail_fast
                continue

            if verdict.stage != stage:
                logger.warning(
                    "Report supplied for %s declares stage %s", stage.value, verdict.stage.value
                )
            results.append(StageResult(stage=stage, status=verdict.status, verdict=verdict))
            if not verdict.passed and fail_fast:
                halted = True

        new_escalations = self.tracker.escalations()[escalations_before:]
        report = PipelineReport(
            timestamp=timestamp,
            stages=results,
            escalations=[e.model_dump(mode="json") for e in new_escalations],
            flake_rate=self.tracker.weekly_flake_rate(),
            metadata={
                "fail_fast": fail_fast,
                "dry_run": self.dry_run,
                "stages_requested": [s.value for s in STAGE_ORDER if s in by_stage],
            },
        )
        logger.info(
            "Pipeline finished: %s (%d passed, %d failed)",
            report.overall_status.value,
            report.passed_stages,
            report.failed_stages,
        )
        return report
