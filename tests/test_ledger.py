"""Tests for the attempt ledger."""

from __future__ import annotations

import pytest

from bvr.exceptions import InvalidSequence
from bvr.ledger import AttemptLedger
from bvr.models import AgentOutcome, Attempt, TestOutcome


def _passed(index: int) -> Attempt:
    return Attempt(index, AgentOutcome(True), TestOutcome(True))


def _failed(index: int, *errors: str) -> Attempt:
    return Attempt(index, AgentOutcome(True), TestOutcome(False, errors))


def _producer_failed(index: int, message: str = "agent crashed") -> Attempt:
    return Attempt(index, AgentOutcome(False, message))


class TestRecord:
    """Tests for ordered recording."""

    def test_record_in_order(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_failed(1, "boom"))
        ledger.record(_passed(2))

        assert ledger.count() == 2
        assert len(ledger) == 2
        assert [a.index for a in ledger] == [1, 2]
        assert ledger.next_index == 3

    def test_first_index_must_be_one(self) -> None:
        ledger = AttemptLedger()
        with pytest.raises(InvalidSequence) as exc_info:
            ledger.record(_passed(2))

        assert exc_info.value.expected == 1
        assert exc_info.value.got == 2
        assert ledger.count() == 0

    def test_rejects_gap_and_repeat(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_passed(1))

        with pytest.raises(InvalidSequence):
            ledger.record(_passed(1))
        with pytest.raises(InvalidSequence):
            ledger.record(_passed(3))

        assert ledger.count() == 1

    def test_attempts_is_a_snapshot(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_passed(1))
        attempts = ledger.attempts
        ledger.record(_passed(2))

        assert len(attempts) == 1


class TestQueries:
    """Tests for ledger queries."""

    def test_empty_ledger(self) -> None:
        ledger = AttemptLedger()
        assert ledger.last() is None
        assert ledger.last_n(3) == []
        assert ledger.last_successful() is None

    def test_last_n(self) -> None:
        ledger = AttemptLedger()
        for i in range(1, 5):
            ledger.record(_failed(i, f"error {i}"))

        assert [a.index for a in ledger.last_n(2)] == [3, 4]
        assert [a.index for a in ledger.last_n(10)] == [1, 2, 3, 4]
        assert ledger.last_n(0) == []
        assert ledger.last_n(-1) == []

    def test_last_successful_prefers_passing_tests(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_passed(1))
        ledger.record(_failed(2, "regression"))

        assert ledger.last_successful().index == 1

    def test_last_successful_counts_skipped_tests(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_failed(1, "boom"))
        ledger.record(Attempt(2, AgentOutcome(True)))

        assert ledger.last_successful().index == 2

    def test_producer_failure_is_not_successful(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_producer_failed(1))

        assert ledger.last_successful() is None

    def test_with_test_outcomes_window(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_failed(1, "a"))
        ledger.record(_producer_failed(2))
        ledger.record(_failed(3, "b"))

        assert [a.index for a in ledger.with_test_outcomes()] == [1, 3]
        assert [a.index for a in ledger.with_test_outcomes(window=2)] == [3]

    def test_summary(self) -> None:
        ledger = AttemptLedger()
        ledger.record(_failed(1, "a"))
        ledger.record(_producer_failed(2))
        ledger.record(_passed(3))

        summary = ledger.summary()
        assert summary.total_attempts == 3
        assert summary.successful_attempts == 1
        assert summary.failed_attempts == 2
        assert summary.last_attempt_passed is True
