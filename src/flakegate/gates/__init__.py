# src/flakegate/gates/__init__.py
"""
Gate Evaluation Module.

Applies threshold rules to a RunRecord, in order:
1. Empty run - required stages must report tests (short-circuits)
2. Failures - failed tests block unless quarantined
3. Coverage - aggregate coverage floor
4. Duration - per-stage ceiling, advisory by default
5. Flake rate - weekly share of flaky or quarantined tests
"""

from flakegate.gates.models import (
    GateStatus,
    PipelineReport,
    Reason,
    ReasonCode,
    StageResult,
    Verdict,
)
from flakegate.gates.rules import (
    ALL_RULES,
    CoverageRule,
    DurationRule,
    EmptyRunRule,
    FailureRule,
    FlakeRateRule,
    PartialRunRule,
    Rule,
)
from flakegate.gates.evaluator import GateEvaluator, evaluate
from flakegate.gates.reporter import ReportGenerator

__all__ = [
    "GateStatus",
    "PipelineReport",
    "Reason",
    "ReasonCode",
    "StageResult",
    "Verdict",
    "ALL_RULES",
    "CoverageRule",
    "DurationRule",
    "EmptyRunRule",
    "FailureRule",
    "FlakeRateRule",
    "PartialRunRule",
    "Rule",
    "GateEvaluator",
    "evaluate",
    "ReportGenerator",
]
