"""Tests for persisted run state."""

from __future__ import annotations

import json
import time
from pathlib import Path

from bvr.models import AgentOutcome, Attempt, RunOutcome, RunResult, Snapshot, TestOutcome
from bvr.state import RunState, generate_run_id, list_run_states


def _result() -> RunResult:
    attempts = (
        Attempt(index=1, agent_outcome=AgentOutcome(succeeded=False, error_message="agent crashed")),
        Attempt(
            index=2,
            agent_outcome=AgentOutcome(succeeded=True),
            test_outcome=TestOutcome(passed=False, error_messages=("test_a - boom",)),
        ),
    )
    return RunResult(
        outcome=RunOutcome.FAILED,
        attempts=attempts,
        final_snapshot_id="abc123",
        error="maximum attempts reached",
        snapshots=(Snapshot(id="abc123", attempt_index=2, is_stable=False, message="Attempt 2: x"),),
        alternative_approach="Try a smaller change",
    )


class TestRunState:
    def test_generate_run_id(self) -> None:
        run_id = generate_run_id()
        assert len(run_id) == 8
        assert run_id != generate_run_id()

    def test_from_result(self) -> None:
        state = RunState.from_result("Fix it", _result(), run_id="run00001")

        assert state.run_id == "run00001"
        assert state.outcome == "failed"
        assert not state.succeeded
        assert state.attempts[0].tests_run is False
        assert state.attempts[0].agent_error == "agent crashed"
        assert state.attempts[1].test_errors == ["test_a - boom"]
        assert state.snapshots[0].id == "abc123"
        assert state.alternative_approach == "Try a smaller change"

    def test_attempts_survive_save_and_load(self, tmp_path: Path) -> None:
        original = _result()
        state = RunState.from_result("Fix it", original)
        path = state.save(tmp_path)

        assert path == tmp_path / "runs" / state.run_id / "run_state.json"

        loaded = RunState.load(state.run_id, tmp_path)
        assert loaded is not None
        attempts = loaded.to_attempts()
        assert [a.index for a in attempts] == [1, 2]
        assert attempts[0].test_outcome is None
        assert attempts[0].agent_outcome == original.attempts[0].agent_outcome
        assert attempts[1].test_outcome == original.attempts[1].test_outcome
        assert attempts[1].timestamp == original.attempts[1].timestamp

    def test_load_missing(self, tmp_path: Path) -> None:
        assert RunState.load("nope", tmp_path) is None

    def test_load_corrupt(self, tmp_path: Path) -> None:
        path = RunState.get_path("broken", tmp_path)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        assert RunState.load("broken", tmp_path) is None

    def test_load_wrong_shape(self, tmp_path: Path) -> None:
        path = RunState.get_path("shape", tmp_path)
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"attempts": "not a list"}))

        assert RunState.load("shape", tmp_path) is None


class TestListRunStates:
    def test_empty(self, tmp_path: Path) -> None:
        assert list_run_states(state_dir=tmp_path) == []

    def test_most_recent_first(self, tmp_path: Path) -> None:
        first = RunState(run_id="first", task="one")
        first.save(tmp_path)
        time.sleep(0.01)
        second = RunState(run_id="second", task="two")
        second.save(tmp_path)

        states = list_run_states(state_dir=tmp_path)
        assert [s.run_id for s in states] == ["second", "first"]

        assert [s.run_id for s in list_run_states(limit=1, state_dir=tmp_path)] == ["second"]

    def test_skips_unreadable(self, tmp_path: Path) -> None:
        RunState(run_id="good").save(tmp_path)
        bad = tmp_path / "runs" / "bad"
        bad.mkdir(parents=True)
        (bad / "run_state.json").write_text("garbage")

        assert [s.run_id for s in list_run_states(state_dir=tmp_path)] == ["good"]
