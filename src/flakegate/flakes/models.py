# src/flakegate/flakes/models.py
"""
Data models for flake tracking.

FlakeState is the only long-lived mutable record in the library and is
owned by the FlakeTracker. Everything else here is frozen.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from flakegate.models import TestOutcome, TestStatus, ensure_utc, utcnow


class Classification(str, Enum):
    """Flake classification of a single test."""

    STABLE = "stable"
    FLAKY = "flaky"
    QUARANTINED = "quarantined"


class QuarantineEntry(BaseModel):
    """Operator-assigned exemption for a known-flaky test."""

    model_config = ConfigDict(frozen=True)

    test_id: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    ticket: str = Field(..., min_length=1, description="Issue tracker reference")
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("expires_at", "created_at")
    @classmethod
    def _normalize(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class EscalationEvent(BaseModel):
    """Emitted once when a quarantine expires without being resolved."""

    model_config = ConfigDict(frozen=True)

    test_id: str
    owner: str
    ticket: str
    expired_at: datetime
    escalated_at: datetime = Field(default_factory=utcnow)
    classification_after: Classification

    @property
    def message(self) -> str:
        return (
            f"Quarantine for {self.test_id} (owner {self.owner}, ticket {self.ticket}) "
            f"expired unresolved at {self.expired_at.isoformat()}; "
            f"test is now {self.classification_after.value}"
        )


class FlakeState(BaseModel):
    """Rolling outcome window and quarantine metadata for one test."""

    test_id: str
    window: list[TestOutcome] = Field(default_factory=list)
    quarantine: Optional[QuarantineEntry] = None

    def add(self, outcome: TestOutcome, cutoff: datetime, max_size: int) -> None:
        """Append an outcome, then evict entries older than cutoff or beyond max_size."""
        self.window.append(outcome)
        self.window.sort(key=lambda o: o.timestamp)
        self.window = [o for o in self.window if o.timestamp >= cutoff][-max_size:]

    def current(self, cutoff: Optional[datetime] = None) -> list[TestOutcome]:
        """Outcomes still inside the window, excluding skips."""
        return [
            o
            for o in self.window
            if o.status != TestStatus.SKIPPED and (cutoff is None or o.timestamp >= cutoff)
        ]

    def failure_rate(self, cutoff: Optional[datetime] = None) -> float:
        decisive = self.current(cutoff)
        if not decisive:
            return 0.0
        return sum(1 for o in decisive if o.failed) / len(decisive)

    def is_regression(self, cutoff: Optional[datetime] = None) -> bool:
        """Every decisive outcome in the window failed."""
        decisive = self.current(cutoff)
        return bool(decisive) and all(o.failed for o in decisive)

    def window_classification(self, cutoff: Optional[datetime] = None) -> Classification:
        """Classify from outcomes alone, ignoring quarantine."""
        rate = self.failure_rate(cutoff)
        if 0.0 < rate < 1.0:
            return Classification.FLAKY
        return Classification.STABLE

    def last_seen(self) -> Optional[datetime]:
        return self.window[-1].timestamp if self.window else None


@runtime_checkable
class FlakeClassificationView(Protocol):
    """Read contract the gate evaluator needs from flake history."""

    def classify(self, test_id: str) -> Classification: ...

    def weekly_flake_rate(self) -> float: ...


class FlakeSnapshot(BaseModel):
    """Point-in-time, read-only copy of the tracker's classifications."""

    model_config = ConfigDict(frozen=True)

    taken_at: datetime = Field(default_factory=utcnow)
    classifications: dict[str, Classification] = Field(default_factory=dict)
    regressions: frozenset[str] = Field(default_factory=frozenset)
    flake_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    @classmethod
    def empty(cls) -> "FlakeSnapshot":
        return cls()

    def classify(self, test_id: str) -> Classification:
        return self.classifications.get(test_id, Classification.STABLE)

    def weekly_flake_rate(self) -> float:
        return self.flake_rate

    def is_quarantined(self, test_id: str) -> bool:
        return self.classify(test_id) == Classification.QUARANTINED

    def tests_with(self, classification: Classification) -> list[str]:
        return sorted(t for t, c in self.classifications.items() if c == classification)

    def counts(self) -> dict[str, int]:
        counts = {c.value: 0 for c in Classification}
        for classification in self.classifications.values():
            counts[classification.value] += 1
        return counts

    def to_dict(self) -> dict:
        return {
            "taken_at": self.taken_at.isoformat(),
            "weekly_flake_rate": self.flake_rate,
            "counts": self.counts(),
            "tests": {
                test_id: {
                    "classification": classification.value,
                    "regression": test_id in self.regressions,
                }
                for test_id, classification in sorted(self.classifications.items())
            },
        }
