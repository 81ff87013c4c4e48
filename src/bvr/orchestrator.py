"""Build-validate-rollback orchestration loop.

Each iteration runs the change producer, validates the result with the
test runner, records the attempt, snapshots the workspace and then asks
the retry policy and rollback engine what to do next:

    IDLE -> ATTEMPTING -> EVALUATING -> CONTINUING | SUCCEEDED | ROLLING_BACK | FAILED

One run is strictly sequential. Only the producer and test runner are
awaited; every decision in between is synchronous.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from .exceptions import CheckpointFailed, NoStableCheckpoint, RestoreFailed, WorkspaceError
from .interfaces import ChangeProducer, TestRunner, Workspace
from .ledger import AttemptLedger
from .models import (
    AgentOutcome,
    Attempt,
    OrchestratorState,
    RollbackDecision,
    RunOutcome,
    RunResult,
    TestOutcome,
)
from .recovery.checkpoints import Checkpointer
from .recovery.rollback import RollbackEngine
from .retry.policy import DEFAULT_MAX_ATTEMPTS, DEFAULT_ROLLBACK_THRESHOLD, RetryPolicy

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"

EventCallback = Callable[[OrchestratorState, str], None]


@dataclass
class RunConfig:
    """Configuration for one orchestration run.

    Attributes:
        max_attempts: Attempts allowed before giving up.
        rollback_threshold: Failures tolerated before rollback is considered.
        validate: Run tests after each attempt. When False the producer
            runs once and the run succeeds iff the producer succeeded.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    rollback_threshold: int = DEFAULT_ROLLBACK_THRESHOLD
    validate: bool = True


class Orchestrator:
    """Drives attempts until success, exhaustion or rollback."""

    def __init__(
        self,
        producer: ChangeProducer,
        test_runner: TestRunner,
        workspace: Workspace,
        config: RunConfig | None = None,
        cancel_check: Callable[[], bool] | None = None,
        on_event: EventCallback | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            producer: Applies the task to the workspace.
            test_runner: Validates the workspace after each change.
            workspace: Snapshot storage; one workspace per run.
            config: Run configuration.
            cancel_check: Optional predicate polled before every attempt.
            on_event: Optional callback receiving (state, message) progress events.
        """
        self.producer = producer
        self.test_runner = test_runner
        self.workspace = workspace
        self.config = config or RunConfig()
        self.cancel_check = cancel_check
        self.on_event = on_event

        self.state = OrchestratorState.IDLE
        self.ledger = AttemptLedger()
        self.checkpointer = Checkpointer(workspace)
        self.rollback_engine = RollbackEngine()
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.max_attempts,
            rollback_threshold=self.config.rollback_threshold,
        )
        self._cancel_requested = threading.Event()

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def request_cancellation(self) -> None:
        """Ask the run to stop before its next attempt. Safe from any thread."""
        self._cancel_requested.set()

    @property
    def cancellation_requested(self) -> bool:
        if self._cancel_requested.is_set():
            return True
        return bool(self.cancel_check and self.cancel_check())

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self, task: str, config: RunConfig | None = None) -> RunResult:
        """Run the task until it succeeds or the run fails.

        Args:
            task: Instruction for the change producer.
            config: Optional configuration replacing the one given at construction.

        Returns:
            RunResult with the full attempt history. Failures carry a reason
            string, never an exception.
        """
        if config is not None:
            self.config = config
        self._reset()

        if not self.config.validate:
            return await self._run_unvalidated(task)

        feedback: str | None = None

        while True:
            if self.cancellation_requested:
                logger.info("Run cancelled before attempt")
                return self._fail(CANCELLED)

            index = self.ledger.next_index
            self._transition(
                OrchestratorState.ATTEMPTING,
                f"Attempt {index}/{self.config.max_attempts}",
            )

            agent_outcome = await self._apply(task, feedback)

            if not agent_outcome.succeeded:
                logger.warning(f"Attempt {index}: change producer failed: {agent_outcome.error_message}")
                self.ledger.record(Attempt(index=index, agent_outcome=agent_outcome))
            else:
                try:
                    changed = self.checkpointer.changed_paths()
                except WorkspaceError as e:
                    return self._fail(str(e))

                if not changed:
                    logger.info(f"Attempt {index}: no files changed, skipping validation")
                    self.ledger.record(Attempt(index=index, agent_outcome=agent_outcome))
                    return self._succeed(None)

                logger.info(f"Attempt {index}: {len(changed)} file(s) changed")
                test_outcome = await self._run_tests()
                self.ledger.record(
                    Attempt(index=index, agent_outcome=agent_outcome, test_outcome=test_outcome)
                )

                try:
                    snapshot = self.checkpointer.snapshot(
                        index,
                        is_stable=test_outcome.passed,
                        message=f"Attempt {index}: {_first_line(task)}",
                    )
                except CheckpointFailed as e:
                    return self._fail(str(e))

                if test_outcome.passed:
                    logger.info(f"Attempt {index}: all tests passed")
                    return self._succeed(snapshot.id)

                logger.warning(f"Attempt {index}: {test_outcome.error_count} test error(s)")

            self._transition(OrchestratorState.EVALUATING, f"Evaluating attempt {index}")
            retry = self.retry_policy.decide(self.ledger)

            if retry.should_retry:
                self._transition(OrchestratorState.CONTINUING, retry.reason)
                feedback = self.retry_policy.generate_feedback(self.ledger)
                continue

            logger.info(f"Stopping: {retry.reason}")
            rollback = self.rollback_engine.decide(self.ledger, self.checkpointer)
            return self._conclude(retry.reason, rollback)

    async def _run_unvalidated(self, task: str) -> RunResult:
        """Single producer run with tests disabled."""
        if self.cancellation_requested:
            return self._fail(CANCELLED)

        self._transition(OrchestratorState.ATTEMPTING, "Attempt 1 (validation disabled)")
        agent_outcome = await self._apply(task, None)
        self.ledger.record(Attempt(index=1, agent_outcome=agent_outcome))

        if agent_outcome.succeeded:
            return self._succeed(None)
        return self._fail(agent_outcome.error_message or "change producer failed")

    def _conclude(self, reason: str, rollback: RollbackDecision) -> RunResult:
        """Turn a stop decision into a terminal state, restoring if possible."""
        if not rollback.should_rollback:
            return self._fail(reason)

        try:
            target = _rollback_target(rollback)
        except NoStableCheckpoint as e:
            logger.warning("No stable snapshot to roll back to; leaving workspace as-is")
            return self._fail(f"{reason}; {e}", alternative=rollback.alternative_approach)

        self._transition(OrchestratorState.ROLLING_BACK, f"Rolling back to {target[:8]}")
        try:
            self.checkpointer.restore(target)
        except RestoreFailed as e:
            return self._fail(str(e), alternative=rollback.alternative_approach)

        return self._fail(
            reason,
            rolled_back=True,
            final_snapshot_id=target,
            alternative=rollback.alternative_approach,
        )

    # ------------------------------------------------------------------
    # Collaborator calls
    # ------------------------------------------------------------------

    async def _apply(self, task: str, feedback: str | None) -> AgentOutcome:
        try:
            return await self.producer.apply(task, feedback)
        except Exception as e:
            logger.error(f"Change producer raised {type(e).__name__}: {e}")
            return AgentOutcome(succeeded=False, error_message=str(e) or type(e).__name__)

    async def _run_tests(self) -> TestOutcome:
        try:
            return await self.test_runner.run()
        except Exception as e:
            logger.error(f"Test runner raised {type(e).__name__}: {e}")
            return TestOutcome(passed=False, error_messages=(f"Test runner error: {e}",))

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self.state = OrchestratorState.IDLE
        self.ledger = AttemptLedger()
        self.checkpointer = Checkpointer(self.workspace)
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.max_attempts,
            rollback_threshold=self.config.rollback_threshold,
        )

    def _transition(self, state: OrchestratorState, message: str = "") -> None:
        logger.debug(f"{self.state.value} -> {state.value}: {message}")
        self.state = state
        if self.on_event:
            self.on_event(state, message)

    def _succeed(self, snapshot_id: str | None) -> RunResult:
        self._transition(OrchestratorState.SUCCEEDED, "Run succeeded")
        return RunResult(
            outcome=RunOutcome.SUCCEEDED,
            attempts=self.ledger.attempts,
            final_snapshot_id=snapshot_id,
            snapshots=tuple(self.checkpointer.history()),
        )

    def _fail(
        self,
        error: str,
        rolled_back: bool = False,
        final_snapshot_id: str | None = None,
        alternative: str | None = None,
    ) -> RunResult:
        if final_snapshot_id is None and not rolled_back:
            latest = self.checkpointer.latest()
            final_snapshot_id = latest.id if latest else None

        self._transition(OrchestratorState.FAILED, error)
        return RunResult(
            outcome=RunOutcome.FAILED,
            attempts=self.ledger.attempts,
            final_snapshot_id=final_snapshot_id,
            error=error,
            rolled_back=rolled_back,
            snapshots=tuple(self.checkpointer.history()),
            alternative_approach=alternative,
        )


def _rollback_target(rollback: RollbackDecision) -> str:
    if rollback.target_snapshot_id is None:
        raise NoStableCheckpoint()
    return rollback.target_snapshot_id


def _first_line(text: str, limit: int = 72) -> str:
    line = text.strip().splitlines()[0] if text.strip() else ""
    return line if len(line) <= limit else line[: limit - 3] + "..."
