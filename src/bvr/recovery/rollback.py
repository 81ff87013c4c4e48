"""Rollback decisions.

Combines pattern classification with checkpoint history to decide:
- Whether the workspace should be rolled back
- Which snapshot to roll back to (the last stable one, if any)
- What alternative strategy to suggest for the next try
"""

from __future__ import annotations

import logging
from typing import Any

from ..ledger import AttemptLedger
from ..models import Decision, PatternKind, PatternSignal, RollbackDecision
from .checkpoints import Checkpointer
from .patterns import PatternClassifier

logger = logging.getLogger(__name__)

MANUAL_INTERVENTION_CONFIDENCE = 0.9
ROLLBACK_CONFIDENCE = 0.85
CONTINUE_CONFIDENCE = 0.7

DECOMPOSITION_ADVICE = "task likely needs decomposition into smaller steps; flag for human review"
DEFAULT_SUGGESTION = "review root causes directly"

SUGGESTIONS: dict[PatternKind, str] = {
    PatternKind.LOOP_DETECTED: "try a fundamentally different implementation or library",
    PatternKind.STALLED: "break the task into smaller steps",
    PatternKind.TIMEOUT_HEAVY: "optimize hot paths or add caching",
}


def suggest_alternatives(signals: list[PatternSignal]) -> str:
    """Map each signal to a canned suggestion, as a bulleted list.

    Args:
        signals: Signals from pattern classification.

    Returns:
        One "- suggestion" line per distinct suggestion.
    """
    suggestions: list[str] = []
    for signal in signals:
        suggestion = SUGGESTIONS.get(signal.kind, DEFAULT_SUGGESTION)
        if suggestion not in suggestions:
            suggestions.append(suggestion)

    if not suggestions:
        suggestions.append(DEFAULT_SUGGESTION)

    return "\n".join(f"- {s}" for s in suggestions)


class RollbackEngine:
    """Decides whether and where to roll back."""

    def __init__(self, classifier: PatternClassifier | None = None):
        self.classifier = classifier or PatternClassifier()

    def decide(self, ledger: AttemptLedger, checkpointer: Checkpointer) -> RollbackDecision:
        """Analyze the ledger and choose a rollback target.

        When a rollback is wanted but no stable snapshot exists, the decision
        still says ``should_rollback`` but carries no target.

        Args:
            ledger: Attempts recorded so far.
            checkpointer: Snapshot history for the run.

        Returns:
            RollbackDecision for the orchestrator.
        """
        analysis = self.classifier.analyze(ledger)
        verdict = analysis.verdict
        last_stable = checkpointer.last_stable()
        target = last_stable.id if last_stable else None

        if verdict.decision == Decision.MANUAL_INTERVENTION:
            decision = RollbackDecision(
                should_rollback=True,
                target_snapshot_id=target,
                confidence=MANUAL_INTERVENTION_CONFIDENCE,
                alternative_approach=DECOMPOSITION_ADVICE,
                reason=f"manual intervention required: {verdict.reasoning}",
            )
        elif verdict.decision == Decision.ROLLBACK:
            decision = RollbackDecision(
                should_rollback=True,
                target_snapshot_id=target,
                confidence=ROLLBACK_CONFIDENCE,
                alternative_approach=suggest_alternatives(analysis.signals),
                reason=verdict.reasoning,
            )
        else:
            decision = RollbackDecision(
                should_rollback=False,
                confidence=CONTINUE_CONFIDENCE,
                reason=verdict.reasoning,
            )

        if decision.should_rollback:
            if target:
                logger.warning(f"Rollback recommended to {target[:8]}: {decision.reason}")
            else:
                logger.warning(f"Rollback recommended but no stable snapshot exists: {decision.reason}")
        else:
            logger.info("No rollback needed")

        return decision

    def summary(self, ledger: AttemptLedger, checkpointer: Checkpointer) -> dict[str, Any]:
        """Summarize rollback-relevant state for reporting."""
        analysis = self.classifier.analyze(ledger)
        last_stable = checkpointer.last_stable()
        return {
            "total_attempts": ledger.count(),
            "stable_snapshots": sum(1 for s in checkpointer.history() if s.is_stable),
            "last_stable_attempt": last_stable.attempt_index if last_stable else None,
            "patterns": [s.label() for s in analysis.signals],
            "verdict": analysis.verdict.decision.value,
        }
