"""Persistent run state.

Every CLI run is saved as JSON under ``<state_dir>/runs/<run_id>/run_state.json``
so it can be inspected later with ``bvr history`` and ``bvr show``.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .models import AgentOutcome, Attempt, RunResult, TestOutcome

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path(".bvr")
STATE_FILENAME = "run_state.json"


def generate_run_id() -> str:
    """Short random id for a run."""
    return uuid.uuid4().hex[:8]


class AttemptRecord(BaseModel):
    """Serialized form of one attempt."""

    index: int
    agent_succeeded: bool
    agent_error: str | None = None
    tests_run: bool = False
    tests_passed: bool | None = None
    test_errors: list[str] = Field(default_factory=list)
    timestamp: str = ""

    @classmethod
    def from_attempt(cls, attempt: Attempt) -> AttemptRecord:
        test = attempt.test_outcome
        return cls(
            index=attempt.index,
            agent_succeeded=attempt.agent_outcome.succeeded,
            agent_error=attempt.agent_outcome.error_message,
            tests_run=test is not None,
            tests_passed=test.passed if test is not None else None,
            test_errors=list(test.error_messages) if test is not None else [],
            timestamp=attempt.timestamp.isoformat(),
        )

    def to_attempt(self) -> Attempt:
        test = None
        if self.tests_run:
            test = TestOutcome(passed=bool(self.tests_passed), error_messages=tuple(self.test_errors))
        return Attempt(
            index=self.index,
            agent_outcome=AgentOutcome(succeeded=self.agent_succeeded, error_message=self.agent_error),
            test_outcome=test,
            timestamp=datetime.fromisoformat(self.timestamp) if self.timestamp else datetime.now(),
        )


class SnapshotRecord(BaseModel):
    id: str
    attempt_index: int
    is_stable: bool
    created_at: str = ""
    message: str = ""


class RunState(BaseModel):
    """Persistent record of one orchestration run."""

    run_id: str = Field(default_factory=generate_run_id)
    task: str = ""
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    outcome: str = "pending"
    attempts: list[AttemptRecord] = Field(default_factory=list)
    snapshots: list[SnapshotRecord] = Field(default_factory=list)
    final_snapshot_id: str | None = None
    rolled_back: bool = False
    error: str | None = None
    alternative_approach: str | None = None

    @classmethod
    def from_result(cls, task: str, result: RunResult, run_id: str | None = None) -> RunState:
        return cls(
            run_id=run_id or generate_run_id(),
            task=task,
            outcome=result.outcome.value,
            attempts=[AttemptRecord.from_attempt(a) for a in result.attempts],
            snapshots=[
                SnapshotRecord(
                    id=s.id,
                    attempt_index=s.attempt_index,
                    is_stable=s.is_stable,
                    created_at=s.created_at.isoformat(),
                    message=s.message,
                )
                for s in result.snapshots
            ],
            final_snapshot_id=result.final_snapshot_id,
            rolled_back=result.rolled_back,
            error=result.error,
            alternative_approach=result.alternative_approach,
        )

    @property
    def succeeded(self) -> bool:
        return self.outcome == "succeeded"

    def to_attempts(self) -> list[Attempt]:
        return [record.to_attempt() for record in self.attempts]

    @staticmethod
    def get_path(run_id: str, state_dir: Path = DEFAULT_STATE_DIR) -> Path:
        return Path(state_dir) / "runs" / run_id / STATE_FILENAME

    @classmethod
    def load(cls, run_id: str, state_dir: Path = DEFAULT_STATE_DIR) -> RunState | None:
        path = cls.get_path(run_id, state_dir)
        if not path.exists():
            return None
        try:
            return cls(**json.loads(path.read_text()))
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"Could not read run state {path}: {e}")
            return None

    def save(self, state_dir: Path = DEFAULT_STATE_DIR) -> Path:
        self.updated_at = datetime.now().isoformat()
        path = self.get_path(self.run_id, state_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2))
        return path


def list_run_states(limit: int = 20, state_dir: Path = DEFAULT_STATE_DIR) -> list[RunState]:
    """List persisted runs, most recently updated first.

    Args:
        limit: Maximum number of runs to return.
        state_dir: Base state directory.

    Returns:
        List of RunState objects sorted by updated_at descending.
    """
    runs_dir = Path(state_dir) / "runs"
    if not runs_dir.exists():
        return []

    states: list[RunState] = []
    for run_dir in runs_dir.iterdir():
        if not run_dir.is_dir():
            continue
        state = RunState.load(run_dir.name, state_dir)
        if state is not None:
            states.append(state)

    states.sort(key=lambda s: s.updated_at, reverse=True)
    return states[:limit]
