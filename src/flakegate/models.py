# src/flakegate/models.py
# Core Pydantic models for test outcomes and run records.

"""
Defines the records produced by one CI stage execution:
- TestOutcome: one test's result within a run
- RunRecord: one execution of a test stage, owning its outcomes

Both are frozen once constructed. Pass/fail/skip counts are derived from
the outcome sequence and never stored next to it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TestStatus(str, Enum):
    """Result of a single test."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class Stage(str, Enum):
    """CI pipeline stage, cheapest first."""

    UNIT = "unit"
    INTEGRATION = "integration"
    E2E = "e2e"
    NIGHTLY = "nightly"


class TestOutcome(BaseModel):
    """One test's result within a run."""

    model_config = ConfigDict(frozen=True)
    __test__ = False

    test_id: str = Field(..., min_length=1, description="Stable key, e.g. suite::name")
    status: TestStatus
    duration: float = Field(default=0.0, ge=0.0, description="Seconds")
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("test_id")
    @classmethod
    def _reject_blank_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("test id must not be blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.PASSED

    @property
    def failed(self) -> bool:
        return self.status == TestStatus.FAILED


class RunRecord(BaseModel):
    """One execution of a test stage."""

    model_config = ConfigDict(frozen=True)

    stage: Stage
    outcomes: tuple[TestOutcome, ...] = ()
    coverage: Optional[float] = Field(
        default=None, ge=0.0, le=100.0, description="Aggregate coverage %, None if not measured"
    )
    total_duration: float = Field(default=0.0, ge=0.0, description="Seconds")
    started_at: datetime = Field(default_factory=utcnow)
    partial: bool = Field(default=False, description="Stage was aborted before completion")

    @field_validator("started_at")
    @classmethod
    def _normalize_started_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _empty_run_has_no_coverage(self) -> "RunRecord":
        if not self.outcomes and self.coverage is not None:
            raise ValueError("a run with no outcomes cannot report coverage")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.outcomes

    @property
    def total_count(self) -> int:
        return len(self.outcomes)

    @property
    def passed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == TestStatus.PASSED)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == TestStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == TestStatus.SKIPPED)

    @property
    def failed_outcomes(self) -> list[TestOutcome]:
        return [o for o in self.outcomes if o.failed]

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total_count,
            "passed": self.passed_count,
            "failed": self.failed_count,
            "skipped": self.skipped_count,
        }
