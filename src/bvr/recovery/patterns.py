"""Failure pattern classification across attempts.

Inspects the tail of the attempt ledger and emits independent signals:
- loop_detected: the last two attempts failed with near-identical errors
- stalled: the error count is growing or not going down
- timeout_heavy: the producer keeps timing out
- improving: the error count is strictly decreasing
- diverging: errors differ between attempts (active exploration)

The signals are then folded into a single verdict using a fixed priority
order. Classification is pure and never raises.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from ..ledger import AttemptLedger
from ..models import Decision, PatternKind, PatternSignal, Verdict
from ..similarity import similarity

logger = logging.getLogger(__name__)

# Thresholds
LOOP_SIMILARITY_THRESHOLD = 0.85
DIVERGING_SIMILARITY_THRESHOLD = 0.5
LOOP_ROLLBACK_CONFIDENCE = 0.8
STALL_ROLLBACK_CONFIDENCE = 0.7
MIN_ATTEMPTS_FOR_STALL_ROLLBACK = 3
RETRY_BUDGET = 3
TIMEOUT_ATTEMPTS = 2
TREND_WINDOW = 3


class PatternAnalysis(NamedTuple):
    """Result of pattern classification."""

    signals: list[PatternSignal]
    verdict: Verdict

    def has(self, kind: PatternKind) -> bool:
        return any(s.kind == kind for s in self.signals)

    def get(self, kind: PatternKind) -> PatternSignal | None:
        for signal in self.signals:
            if signal.kind == kind:
                return signal
        return None


def _error_counts(ledger: AttemptLedger) -> list[int]:
    """Error counts of attempts with test outcomes among the last few, oldest first."""
    return [a.test_outcome.error_count for a in ledger.with_test_outcomes(TREND_WINDOW)]  # type: ignore[union-attr]


def _last_two_similarity(ledger: AttemptLedger) -> float | None:
    """Similarity of the last two attempts' errors, None unless both ran tests."""
    last_two = ledger.last_n(2)
    if len(last_two) < 2:
        return None
    previous, current = last_two
    if previous.test_outcome is None or current.test_outcome is None:
        return None
    return similarity(previous.test_outcome.error_messages, current.test_outcome.error_messages)


def detect_loop(ledger: AttemptLedger) -> PatternSignal | None:
    """Detect the same errors repeating in consecutive attempts."""
    score = _last_two_similarity(ledger)
    if score is None or score <= LOOP_SIMILARITY_THRESHOLD:
        return None

    return PatternSignal(
        kind=PatternKind.LOOP_DETECTED,
        confidence=score,
        description="Very similar errors appearing in consecutive attempts",
        recommendation="Try a completely different approach or rollback",
    )


def detect_stall(ledger: AttemptLedger) -> PatternSignal | None:
    """Detect an error count that is growing or flat."""
    counts = _error_counts(ledger)
    if len(counts) < 2:
        return None

    non_decreasing = all(b >= a for a, b in zip(counts, counts[1:]))
    if non_decreasing and counts[-1] > counts[0]:
        return PatternSignal(
            kind=PatternKind.STALLED,
            confidence=0.8,
            description=f"Error count increasing: {' -> '.join(map(str, counts))}",
            recommendation="Current approach is making things worse. Rollback and try a different strategy.",
        )

    if counts[0] > 0 and all(c == counts[0] for c in counts):
        return PatternSignal(
            kind=PatternKind.STALLED,
            confidence=0.7,
            description=f"No reduction in errors: stuck at {counts[0]}",
            recommendation="No progress detected. Consider an alternative approach.",
        )

    return None


def detect_timeouts(ledger: AttemptLedger) -> PatternSignal | None:
    """Detect repeated producer timeouts."""
    timeout_count = sum(
        1
        for a in ledger
        if a.agent_outcome.error_message and "timeout" in a.agent_outcome.error_message.lower()
    )
    if timeout_count < TIMEOUT_ATTEMPTS:
        return None

    return PatternSignal(
        kind=PatternKind.TIMEOUT_HEAVY,
        confidence=0.9,
        description=f"Timeout errors occurred in {timeout_count} attempts",
        recommendation="Task may be too complex or need more time. Consider breaking it into smaller tasks.",
    )


def detect_improvement(ledger: AttemptLedger) -> PatternSignal | None:
    """Detect a strictly decreasing error count, or else exploration of different errors."""
    counts = _error_counts(ledger)
    if len(counts) < 2:
        return None

    strictly_decreasing = all(b < a for a, b in zip(counts, counts[1:]))
    if strictly_decreasing and counts[0] > 0:
        rate = 1 - counts[-1] / counts[0]
        return PatternSignal(
            kind=PatternKind.IMPROVING,
            confidence=min(0.3 + rate, 1.0),
            description=f"Error count decreasing: {counts[0]} -> {counts[-1]}",
            recommendation="Progress detected. Continue with the current approach.",
        )

    score = _last_two_similarity(ledger)
    if score is not None and score < DIVERGING_SIMILARITY_THRESHOLD:
        return PatternSignal(
            kind=PatternKind.DIVERGING,
            confidence=1 - score,
            description="Different errors in each attempt, indicating exploration of solutions",
            recommendation="Continue iterating, different approaches are being tried.",
        )

    return None


def determine_verdict(signals: list[PatternSignal], attempt_count: int) -> Verdict:
    """Fold signals into one verdict, first matching rule wins."""

    def any_signal(kind: PatternKind, above: float | None = None) -> bool:
        return any(s.kind == kind and (above is None or s.confidence > above) for s in signals)

    if any_signal(PatternKind.LOOP_DETECTED, LOOP_ROLLBACK_CONFIDENCE):
        return Verdict(Decision.ROLLBACK, "repeating error pattern detected")

    if (
        any_signal(PatternKind.STALLED, STALL_ROLLBACK_CONFIDENCE)
        and attempt_count >= MIN_ATTEMPTS_FOR_STALL_ROLLBACK
    ):
        return Verdict(Decision.ROLLBACK, "no progress after multiple attempts")

    if any_signal(PatternKind.TIMEOUT_HEAVY):
        return Verdict(
            Decision.MANUAL_INTERVENTION, "repeated timeouts; task may need decomposition"
        )

    if any_signal(PatternKind.IMPROVING) or any_signal(PatternKind.DIVERGING):
        return Verdict(Decision.CONTINUE, "progress or active exploration detected")

    if attempt_count < RETRY_BUDGET:
        return Verdict(Decision.CONTINUE, "within retry budget")

    return Verdict(Decision.ROLLBACK, "maximum attempts reached without clear improvement")


class PatternClassifier:
    """Classifies the trajectory of failures recorded in a ledger."""

    detectors = (detect_loop, detect_stall, detect_timeouts, detect_improvement)

    def analyze(self, ledger: AttemptLedger) -> PatternAnalysis:
        """Run every detector against the ledger and derive a verdict.

        Args:
            ledger: The attempts recorded so far.

        Returns:
            PatternAnalysis with zero or more signals and one verdict.
        """
        signals = [s for s in (detect(ledger) for detect in self.detectors) if s is not None]
        verdict = determine_verdict(signals, ledger.count())

        for signal in signals:
            logger.debug(f"Pattern {signal.label()}: {signal.description}")
        logger.debug(f"Verdict: {verdict.decision.value} ({verdict.reasoning})")

        return PatternAnalysis(signals=signals, verdict=verdict)


def analyze_patterns(ledger: AttemptLedger) -> PatternAnalysis:
    """Convenience wrapper around PatternClassifier.analyze."""
    return PatternClassifier().analyze(ledger)
