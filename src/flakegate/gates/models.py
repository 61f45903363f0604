# src/flakegate/gates/models.py
"""
Data models for gate evaluation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from flakegate.models import RunRecord, Stage, utcnow


class GateStatus(str, Enum):
    """Status of a stage in a pipeline run."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


class ReasonCode(str, Enum):
    """Codes for verdict reasons, in rule order."""
    EMPTY_RUN = "EMPTY_RUN"
    UNQUARANTINED_FAILURE = "UNQUARANTINED_FAILURE"
    QUARANTINED_FAILURE = "QUARANTINED_FAILURE"
    COVERAGE_BELOW_THRESHOLD = "COVERAGE_BELOW_THRESHOLD"
    DURATION_EXCEEDED = "DURATION_EXCEEDED"
    FLAKE_RATE_EXCEEDED = "FLAKE_RATE_EXCEEDED"
    PARTIAL_RUN = "PARTIAL_RUN"


def format_number(value: float) -> str:
    """Render 72.0 as '72' and 72.5 as '72.5'."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.10g}"


@dataclass(frozen=True)
class Reason:
    """One itemized finding of a gate evaluation."""
    code: ReasonCode
    blocking: bool
    detail: Optional[str] = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.code.value}: {self.detail}"
        return self.code.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "blocking": self.blocking,
            "detail": self.detail,
            "message": str(self),
        }


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating one RunRecord against the gate."""
    passed: bool
    run: RunRecord
    reasons: tuple[Reason, ...] = ()
    evaluated_at: datetime = field(default_factory=utcnow, compare=False)

    @property
    def stage(self) -> Stage:
        return self.run.stage

    @property
    def messages(self) -> list[str]:
        return [str(r) for r in self.reasons]

    @property
    def blocking_reasons(self) -> list[Reason]:
        return [r for r in self.reasons if r.blocking]

    @property
    def advisory_reasons(self) -> list[Reason]:
        return [r for r in self.reasons if not r.blocking]

    @property
    def status(self) -> GateStatus:
        return GateStatus.PASSED if self.passed else GateStatus.FAILED

    def has(self, code: ReasonCode) -> bool:
        return any(r.code == code for r in self.reasons)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass": self.passed,
            "stage": self.stage.value,
            "evaluated_at": self.evaluated_at.isoformat(),
            "reasons": [r.to_dict() for r in self.reasons],
            "summary": {
                **self.run.summary(),
                "coverage": self.run.coverage,
                "total_duration": self.run.total_duration,
                "partial": self.run.partial,
                "blocking": len(self.blocking_reasons),
                "advisory": len(self.advisory_reasons),
            },
            "run": self.run.model_dump(mode="json"),
        }


@dataclass
class StageResult:
    """Result of one pipeline stage."""
    stage: Stage
    status: GateStatus
    verdict: Optional[Verdict] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "error": self.error,
        }


@dataclass
class PipelineReport:
    """Complete report from running the staged pipeline."""
    timestamp: datetime
    stages: list[StageResult] = field(default_factory=list)
    escalations: list[dict[str, Any]] = field(default_factory=list)
    flake_rate: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def overall_status(self) -> GateStatus:
        statuses = [s.status for s in self.stages]
        if any(s == GateStatus.ERROR for s in statuses):
            return GateStatus.ERROR
        if any(s == GateStatus.FAILED for s in statuses):
            return GateStatus.FAILED
        if not statuses or all(s == GateStatus.SKIPPED for s in statuses):
            return GateStatus.SKIPPED
        return GateStatus.PASSED

    @property
    def passed(self) -> bool:
        return self.overall_status == GateStatus.PASSED

    @property
    def passed_stages(self) -> int:
        return sum(1 for s in self.stages if s.status == GateStatus.PASSED)

    @property
    def failed_stages(self) -> int:
        return sum(1 for s in self.stages if s.status in (GateStatus.FAILED, GateStatus.ERROR))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "overall_status": self.overall_status.value,
            "summary": {
                "total_stages": len(self.stages),
                "passed": self.passed_stages,
                "failed": self.failed_stages,
                "weekly_flake_rate": self.flake_rate,
            },
            "stages": [s.to_dict() for s in self.stages],
            "escalations": self.escalations,
            "metadata": self.metadata,
        }
