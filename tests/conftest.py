# tests/conftest.py
# Pytest configuration and fixtures for flakegate tests.

"""
Shared pytest fixtures for testing the library.

Provides:
- A controllable clock for window and expiry tests
- Flake trackers wired to a collecting notifier
- Gate configuration and run/report factories
- Config cache isolation
"""

from datetime import datetime, timedelta, timezone

import pytest

from flakegate.core.config import GateConfig, clear_config_cache
from flakegate.flakes import CollectingNotifier, FlakeTracker
from flakegate.models import RunRecord, Stage, TestOutcome, TestStatus

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def _isolate_config_cache():
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def tracker(clock, notifier) -> FlakeTracker:
    """Empty tracker on the fake clock."""
    return FlakeTracker(window_size=50, window_days=7, notifier=notifier, clock=clock)


@pytest.fixture
def gate_config() -> GateConfig:
    return GateConfig(min_coverage=80, max_duration={Stage.UNIT: 600}, max_flake_rate=0.01)


@pytest.fixture
def make_run(clock):
    """Factory for RunRecords with mostly-passing outcomes."""

    def _make(
        passed: int = 50,
        failed: tuple[str, ...] = (),
        skipped: int = 0,
        stage: Stage = Stage.UNIT,
        coverage=85.0,
        total_duration: float = 120.0,
        at: datetime = None,
        partial: bool = False,
    ) -> RunRecord:
        at = at or clock()
        outcomes = [
            TestOutcome(test_id=f"tests/test_suite.py::test_{i:03d}", status=TestStatus.PASSED,
                        duration=1.0, timestamp=at)
            for i in range(passed)
        ]
        outcomes += [
            TestOutcome(test_id=test_id, status=TestStatus.FAILED, duration=1.0, timestamp=at)
            for test_id in failed
        ]
        outcomes += [
            TestOutcome(test_id=f"tests/test_suite.py::test_skip_{i}", status=TestStatus.SKIPPED,
                        timestamp=at)
            for i in range(skipped)
        ]
        return RunRecord(
            stage=stage,
            outcomes=tuple(outcomes),
            coverage=coverage if outcomes else None,
            total_duration=total_duration,
            started_at=at,
            partial=partial,
        )

    return _make


@pytest.fixture
def record_history(tracker, clock):
    """Record a sequence of statuses for one test, one run per hour."""

    def _record(test_id: str, statuses: list[str]) -> None:
        for i, status in enumerate(statuses):
            at = clock() - timedelta(hours=len(statuses) - i)
            tracker.record(RunRecord(
                stage=Stage.UNIT,
                outcomes=(TestOutcome(test_id=test_id, status=TestStatus(status), timestamp=at),),
                started_at=at,
            ))

    return _record


@pytest.fixture
def sample_report() -> dict:
    """Raw unit-stage report: 50 passing tests, coverage 85, 120s."""
    return {
        "stage": "unit",
        "started_at": "2024-05-01T11:58:00+00:00",
        "coverage": 85,
        "total_duration": 120,
        "outcomes": [
            {
                "test_id": f"tests/test_api.py::test_case_{i:02d}",
                "status": "passed",
                "duration": 2.4,
                "timestamp": "2024-05-01T11:58:30+00:00",
            }
            for i in range(50)
        ],
    }


# Markers for special test categories
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: tests that take significant time")
    config.addinivalue_line("markers", "concurrency: tests exercising threaded tracker updates")
