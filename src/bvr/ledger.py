"""Append-only record of attempts within one run."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .exceptions import InvalidSequence
from .models import Attempt


@dataclass(frozen=True)
class LedgerSummary:
    """Summary statistics over a ledger."""

    total_attempts: int
    successful_attempts: int
    failed_attempts: int
    last_attempt_passed: bool


class AttemptLedger:
    """Append-only, strictly ordered list of attempts.

    Not thread safe: the orchestrator owning the ledger serializes access.
    """

    def __init__(self) -> None:
        self._attempts: list[Attempt] = []

    def record(self, attempt: Attempt) -> None:
        """Append an attempt.

        Raises:
            InvalidSequence: If ``attempt.index`` is not ``count() + 1``.
        """
        expected = len(self._attempts) + 1
        if attempt.index != expected:
            raise InvalidSequence(expected, attempt.index)
        self._attempts.append(attempt)

    def count(self) -> int:
        return len(self._attempts)

    def __len__(self) -> int:
        return len(self._attempts)

    def __iter__(self) -> Iterator[Attempt]:
        return iter(tuple(self._attempts))

    @property
    def attempts(self) -> tuple[Attempt, ...]:
        return tuple(self._attempts)

    @property
    def next_index(self) -> int:
        return len(self._attempts) + 1

    def last(self) -> Attempt | None:
        return self._attempts[-1] if self._attempts else None

    def last_n(self, n: int) -> list[Attempt]:
        """Return up to the last ``n`` attempts, oldest first."""
        if n <= 0:
            return []
        return list(self._attempts[-n:])

    def last_successful(self) -> Attempt | None:
        """Most recent attempt whose tests passed (or, with tests skipped, whose producer succeeded)."""
        for attempt in reversed(self._attempts):
            if attempt.is_successful:
                return attempt
        return None

    def with_test_outcomes(self, window: int | None = None) -> list[Attempt]:
        """Attempts carrying a test outcome, optionally only among the last ``window``."""
        pool = self._attempts if window is None else self.last_n(window)
        return [a for a in pool if a.test_outcome is not None]

    def summary(self) -> LedgerSummary:
        successful = sum(1 for a in self._attempts if a.is_successful)
        last = self.last()
        return LedgerSummary(
            total_attempts=len(self._attempts),
            successful_attempts=successful,
            failed_attempts=len(self._attempts) - successful,
            last_attempt_passed=bool(last and last.test_outcome and last.test_outcome.passed),
        )
