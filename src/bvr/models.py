"""Data models for attempts, snapshots and decisions.

Core records are frozen dataclasses: once an Attempt or Snapshot is created
it is never mutated, the ledger and checkpointer only append.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class AgentOutcome:
    """Result reported by the change producer."""

    succeeded: bool
    error_message: str | None = None


@dataclass(frozen=True)
class TestOutcome:
    """Result reported by the test runner."""

    __test__ = False  # not a pytest test class

    passed: bool
    error_messages: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable of strings but always store a tuple
        if not isinstance(self.error_messages, tuple):
            object.__setattr__(self, "error_messages", tuple(self.error_messages))

    @property
    def error_count(self) -> int:
        return len(self.error_messages)


@dataclass(frozen=True)
class Attempt:
    """One iteration's outcome.

    ``test_outcome`` is None when tests were not run for this attempt
    (producer failed, or nothing changed).
    """

    index: int
    agent_outcome: AgentOutcome
    test_outcome: TestOutcome | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def has_test_outcome(self) -> bool:
        return self.test_outcome is not None

    @property
    def error_messages(self) -> tuple[str, ...]:
        """Test error messages, empty when tests were skipped."""
        if self.test_outcome is None:
            return ()
        return self.test_outcome.error_messages

    @property
    def is_successful(self) -> bool:
        """Tests passed, or tests were skipped and the producer succeeded."""
        if self.test_outcome is not None:
            return self.test_outcome.passed
        return self.agent_outcome.succeeded


@dataclass(frozen=True)
class Snapshot:
    """Checkpoint of workspace state tied to one attempt."""

    id: str
    attempt_index: int
    is_stable: bool
    created_at: datetime = field(default_factory=datetime.now)
    message: str = ""

    @property
    def short_id(self) -> str:
        return self.id[:8]


class PatternKind(str, Enum):
    """Kinds of trend detected across attempts."""

    LOOP_DETECTED = "loop_detected"  # Same errors repeating
    STALLED = "stalled"  # Error count not going down
    TIMEOUT_HEAVY = "timeout_heavy"  # Producer keeps timing out
    IMPROVING = "improving"  # Error count strictly decreasing
    DIVERGING = "diverging"  # Different errors, exploring


@dataclass(frozen=True)
class PatternSignal:
    """One detected trend with its confidence (0.0 to 1.0)."""

    kind: PatternKind
    confidence: float
    description: str
    recommendation: str

    def label(self) -> str:
        return f"{self.kind.value} ({self.confidence:.0%})"


class Decision(str, Enum):
    """Overall assessment of the attempt history."""

    CONTINUE = "continue"
    ROLLBACK = "rollback"
    MANUAL_INTERVENTION = "manual_intervention"


@dataclass(frozen=True)
class Verdict:
    decision: Decision
    reasoning: str


@dataclass(frozen=True)
class RetryDecision:
    """Output of the retry policy."""

    should_retry: bool
    should_rollback: bool
    reason: str


@dataclass(frozen=True)
class RollbackDecision:
    """Output of the rollback engine."""

    should_rollback: bool
    confidence: float
    target_snapshot_id: str | None = None
    alternative_approach: str | None = None
    reason: str = ""

    def __post_init__(self) -> None:
        if self.target_snapshot_id is not None and not self.should_rollback:
            raise ValueError("target_snapshot_id requires should_rollback")

    @property
    def has_target(self) -> bool:
        return self.should_rollback and self.target_snapshot_id is not None


class RunOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OrchestratorState(str, Enum):
    """States of the orchestration loop."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    EVALUATING = "evaluating"
    CONTINUING = "continuing"
    SUCCEEDED = "succeeded"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrchestratorState.SUCCEEDED, OrchestratorState.FAILED)


@dataclass(frozen=True)
class RunResult:
    """Final result of one orchestration run."""

    outcome: RunOutcome
    attempts: tuple[Attempt, ...]
    final_snapshot_id: str | None = None
    error: str | None = None
    rolled_back: bool = False
    snapshots: tuple[Snapshot, ...] = ()
    alternative_approach: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == RunOutcome.SUCCEEDED

    def summary(self) -> str:
        """One-line summary for display."""
        count = len(self.attempts)
        noun = "attempt" if count == 1 else "attempts"
        if self.succeeded:
            return f"Succeeded after {count} {noun}"
        text = f"Failed after {count} {noun}"
        if self.rolled_back and self.final_snapshot_id:
            text += f" (rolled back to {self.final_snapshot_id[:8]})"
        if self.error:
            text += f": {self.error}"
        return text
