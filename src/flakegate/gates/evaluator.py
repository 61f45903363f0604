# src/flakegate/gates/evaluator.py
"""
Gate evaluator - applies rules to a RunRecord and produces a Verdict.
"""

import logging
from typing import Optional

from flakegate.core.config import GateConfig
from flakegate.flakes.models import FlakeClassificationView, FlakeSnapshot
from flakegate.gates.models import Reason, Verdict
from flakegate.gates.rules import ALL_RULES, Rule
from flakegate.models import RunRecord

logger = logging.getLogger(__name__)


class GateEvaluator:
    """Evaluates runs against a fixed GateConfig."""

    def __init__(
        self,
        config: Optional[GateConfig] = None,
        rules: Optional[list[Rule]] = None,
    ):
        self.config = config or GateConfig()
        self.rules = list(rules) if rules is not None else list(ALL_RULES)

    def evaluate(
        self,
        run: RunRecord,
        flakes: Optional[FlakeClassificationView] = None,
    ) -> Verdict:
        """
        Apply every rule in order and collect all reasons.

        A structural rule that produces a blocking reason ends evaluation
        early. The verdict passes iff no reason is blocking.

        Args:
            run: The ingested run.
            flakes: Classification view, usually a FlakeSnapshot. Defaults
                to an empty history (nothing quarantined, zero flake rate).
        """
        flakes = flakes if flakes is not None else FlakeSnapshot.empty()

        reasons: list[Reason] = []
        for rule in self.rules:
            found = rule.check(run, self.config, flakes)
            reasons.extend(found)
            if rule.structural and any(r.blocking for r in found):
                break

        verdict = Verdict(
            passed=not any(r.blocking for r in reasons),
            run=run,
            reasons=tuple(reasons),
        )
        logger.debug(
            "Evaluated %s run: %s (%d blocking, %d advisory)",
            run.stage.value,
            verdict.status.value,
            len(verdict.blocking_reasons),
            len(verdict.advisory_reasons),
        )
        return verdict

    def available_rules(self) -> list[dict]:
        """List configured rules."""
        return [
            {
                "id": r.id,
                "name": r.name,
                "description": r.description,
                "structural": r.structural,
            }
            for r in self.rules
        ]


def evaluate(
    run: RunRecord,
    config: GateConfig,
    flake_snapshot: FlakeClassificationView,
) -> Verdict:
    """Evaluate one run with the default rule set."""
    return GateEvaluator(config).evaluate(run, flake_snapshot)
