# src/flakegate/gates/rules.py
"""
Concrete gate rules, applied in this order:

1. Empty Run Rule - a required stage reported no tests
2. Failure Rule - failed tests, split by quarantine status
3. Coverage Rule - aggregate coverage below the floor
4. Duration Rule - stage ran past its ceiling
5. Flake Rate Rule - too many flaky tests this week

A partial-run notice follows. Rules never raise for a failing run; they
return the reasons they found.
"""

from dataclasses import dataclass

from flakegate.core.config import GateConfig
from flakegate.flakes.models import Classification, FlakeClassificationView
from flakegate.gates.models import Reason, ReasonCode, format_number
from flakegate.models import RunRecord


@dataclass
class Rule:
    """Base rule definition."""
    id: str
    name: str
    description: str
    structural: bool = False

    def check(
        self,
        run: RunRecord,
        config: GateConfig,
        flakes: FlakeClassificationView,
    ) -> list[Reason]:
        """Return the reasons this rule finds. Override in subclasses."""
        raise NotImplementedError("Subclasses must implement check()")


@dataclass
class EmptyRunRule(Rule):
    """
    Rule 1: Empty Run

    A stage that must run tests but reported none fails outright. Later
    rules are not applied.
    """
    id: str = "empty-run"
    name: str = "Empty Run"
    description: str = "Required stages must report at least one test"
    structural: bool = True

    def check(self, run, config, flakes):
        if run.is_empty and not config.allows_empty(run.stage):
            return [Reason(ReasonCode.EMPTY_RUN, blocking=True)]
        return []


@dataclass
class FailureRule(Rule):
    """
    Rule 2: Failures

    Each failed outcome blocks unless its test is quarantined, in which
    case it is reported as advisory.
    """
    id: str = "failures"
    name: str = "Test Failures"
    description: str = "Failed tests block the gate unless quarantined"

    def check(self, run, config, flakes):
        reasons = []
        for outcome in run.failed_outcomes:
            if flakes.classify(outcome.test_id) == Classification.QUARANTINED:
                reasons.append(Reason(ReasonCode.QUARANTINED_FAILURE, blocking=False, detail=outcome.test_id))
            else:
                reasons.append(Reason(ReasonCode.UNQUARANTINED_FAILURE, blocking=True, detail=outcome.test_id))
        return reasons


@dataclass
class CoverageRule(Rule):
    """
    Rule 3: Coverage

    Unmeasured coverage (None) neither passes nor fails.
    """
    id: str = "coverage"
    name: str = "Coverage Floor"
    description: str = "Aggregate coverage must meet the configured minimum"

    def check(self, run, config, flakes):
        if run.coverage is not None and run.coverage < config.min_coverage:
            detail = f"{format_number(run.coverage)} < {format_number(config.min_coverage)}"
            return [Reason(ReasonCode.COVERAGE_BELOW_THRESHOLD, blocking=True, detail=detail)]
        return []


@dataclass
class DurationRule(Rule):
    """
    Rule 4: Duration

    Advisory unless the stage is configured as duration-blocking.
    """
    id: str = "duration"
    name: str = "Duration Ceiling"
    description: str = "Stage duration should stay under its ceiling"

    def check(self, run, config, flakes):
        ceiling = config.duration_ceiling(run.stage)
        if ceiling is not None and run.total_duration > ceiling:
            detail = f"{format_number(run.total_duration)} > {format_number(ceiling)}"
            return [
                Reason(
                    ReasonCode.DURATION_EXCEEDED,
                    blocking=config.duration_blocks(run.stage),
                    detail=detail,
                )
            ]
        return []


@dataclass
class FlakeRateRule(Rule):
    """
    Rule 5: Weekly Flake Rate

    Compares the tracker's trailing 7-day flake rate with the ceiling.
    """
    id: str = "flake-rate"
    name: str = "Weekly Flake Rate"
    description: str = "Share of flaky or quarantined tests this week must stay under the ceiling"

    def check(self, run, config, flakes):
        rate = flakes.weekly_flake_rate()
        if rate > config.max_flake_rate:
            detail = f"{format_number(round(rate, 6))} > {format_number(config.max_flake_rate)}"
            return [Reason(ReasonCode.FLAKE_RATE_EXCEEDED, blocking=True, detail=detail)]
        return []


@dataclass
class PartialRunRule(Rule):
    """Notes that the stage was aborted before all tests completed."""
    id: str = "partial-run"
    name: str = "Partial Run"
    description: str = "Flags runs from aborted stages"

    def check(self, run, config, flakes):
        if run.partial:
            return [Reason(ReasonCode.PARTIAL_RUN, blocking=False)]
        return []


ALL_RULES: list[Rule] = [
    EmptyRunRule(),
    FailureRule(),
    CoverageRule(),
    DurationRule(),
    FlakeRateRule(),
    PartialRunRule(),
]
