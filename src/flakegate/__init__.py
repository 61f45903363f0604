# src/flakegate/__init__.py
# Main package init - exports public API for flakegate.

"""
flakegate: a CI test-quality gate evaluator.

Ingests per-stage test reports, applies coverage, duration and flake-rate
thresholds, and tracks flaky tests across runs with an owner-assigned
quarantine lifecycle.

Library usage:
    from flakegate import FlakeTracker, GateConfig, evaluate, ingest

    run = ingest(report)
    tracker.record(run)
    verdict = evaluate(run, GateConfig(), tracker.snapshot())

CLI Usage:
    flakegate init                               # Initialize local configuration
    flakegate gate evaluate unit.json            # Gate one stage report
    flakegate quarantine add <test-id> ...       # Quarantine a flaky test
    flakegate flakes status                      # Show flake metrics
"""

__version__ = "0.1.0"

from flakegate.models import RunRecord, Stage, TestOutcome, TestStatus
from flakegate.errors import (
    ConfigError,
    FlakegateError,
    MalformedReportError,
    MissingMetadataError,
    QuarantineError,
    StateError,
)
from flakegate.core.config import FlakegateConfig, GateConfig, load_config
from flakegate.ingest import ingest, load_report
from flakegate.flakes import (
    Classification,
    EscalationEvent,
    FlakeClassificationView,
    FlakeSnapshot,
    FlakeTracker,
    QuarantineEntry,
    load_tracker,
    save_tracker,
)
from flakegate.gates import GateEvaluator, Reason, ReasonCode, ReportGenerator, Verdict, evaluate
from flakegate.pipeline import QualityPipeline

__all__ = [
    # Models
    "RunRecord",
    "Stage",
    "TestOutcome",
    "TestStatus",
    # Errors
    "ConfigError",
    "FlakegateError",
    "MalformedReportError",
    "MissingMetadataError",
    "QuarantineError",
    "StateError",
    # Configuration
    "FlakegateConfig",
    "GateConfig",
    "load_config",
    # Ingestion
    "ingest",
    "load_report",
    # Flake tracking
    "Classification",
    "EscalationEvent",
    "FlakeClassificationView",
    "FlakeSnapshot",
    "FlakeTracker",
    "QuarantineEntry",
    "load_tracker",
    "save_tracker",
    # Gate
    "GateEvaluator",
    "Reason",
    "ReasonCode",
    "ReportGenerator",
    "Verdict",
    "evaluate",
    # Pipeline
    "QualityPipeline",
]
