"""Retry policy: bounded retries guided by pattern classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..ledger import AttemptLedger
from ..models import Attempt, Decision, PatternKind, RetryDecision
from ..recovery.patterns import PatternClassifier
from ..similarity import edit_similarity
from .context import build_retry_feedback

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_ROLLBACK_THRESHOLD = 2
UNCHANGED_SIMILARITY = 0.8


def _attempt_errors(attempt: Attempt) -> list[str]:
    """Errors to report for an attempt: test errors, else the producer error."""
    if attempt.test_outcome is not None:
        return list(attempt.test_outcome.error_messages)
    if attempt.agent_outcome.error_message:
        return [f"Change producer failed: {attempt.agent_outcome.error_message}"]
    return []


@dataclass
class RetryPolicy:
    """Decides whether to retry and builds feedback for the next attempt.

    Attributes:
        max_attempts: Attempts allowed in one run.
        rollback_threshold: Failures tolerated before rollback is considered.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    rollback_threshold: int = DEFAULT_ROLLBACK_THRESHOLD
    classifier: PatternClassifier = field(default_factory=PatternClassifier)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.rollback_threshold < 1:
            raise ValueError(
                f"rollback_threshold must be at least 1, got {self.rollback_threshold}"
            )

    def decide(self, ledger: AttemptLedger) -> RetryDecision:
        """Decide whether another attempt should be made.

        Args:
            ledger: Attempts recorded so far.

        Returns:
            RetryDecision; a manual-intervention verdict surfaces as a rollback here.
        """
        count = ledger.count()

        if count == 0:
            return RetryDecision(should_retry=True, should_rollback=False, reason="first attempt")

        if count >= self.max_attempts:
            logger.info(f"Maximum attempts ({self.max_attempts}) reached")
            return RetryDecision(
                should_retry=False,
                should_rollback=True,
                reason="maximum attempts reached",
            )

        verdict = self.classifier.analyze(ledger).verdict
        if verdict.decision in (Decision.ROLLBACK, Decision.MANUAL_INTERVENTION):
            logger.info(f"Stopping retries: {verdict.reasoning}")
            return RetryDecision(
                should_retry=False,
                should_rollback=True,
                reason=verdict.reasoning,
            )

        return RetryDecision(
            should_retry=True,
            should_rollback=False,
            reason=f"retry {count + 1}/{self.max_attempts}",
        )

    def error_blob_similarity(self, ledger: AttemptLedger) -> float | None:
        """Edit similarity of the joined errors of the last two attempts."""
        last_two = ledger.last_n(2)
        if len(last_two) < 2:
            return None
        previous, current = ("|".join(_attempt_errors(a)) for a in last_two)
        return edit_similarity(previous, current)

    def generate_feedback(self, ledger: AttemptLedger) -> str:
        """Feedback for the next attempt, built from the last attempt's errors.

        Returns an empty string before the first attempt.
        """
        last = ledger.last()
        if last is None:
            return ""

        loop_detected = self.classifier.analyze(ledger).has(PatternKind.LOOP_DETECTED)
        blob_similarity = self.error_blob_similarity(ledger)
        nearly_unchanged = blob_similarity is not None and blob_similarity > UNCHANGED_SIMILARITY

        return build_retry_feedback(
            errors=_attempt_errors(last),
            failed_attempt=last.index,
            max_attempts=self.max_attempts,
            loop_detected=loop_detected,
            nearly_unchanged=nearly_unchanged,
        )
