"""bvr - build, validate and roll back agent-driven code changes."""

__version__ = "0.1.0"

from .exceptions import (
    BVRError,
    CheckpointFailed,
    InvalidSequence,
    NoStableCheckpoint,
    RestoreFailed,
    WorkspaceError,
)
from .ledger import AttemptLedger
from .models import (
    AgentOutcome,
    Attempt,
    Decision,
    OrchestratorState,
    PatternKind,
    PatternSignal,
    RetryDecision,
    RollbackDecision,
    RunOutcome,
    RunResult,
    Snapshot,
    TestOutcome,
    Verdict,
)
from .orchestrator import Orchestrator, RunConfig

__all__ = [
    "__version__",
    "AgentOutcome",
    "Attempt",
    "AttemptLedger",
    "BVRError",
    "CheckpointFailed",
    "Decision",
    "InvalidSequence",
    "NoStableCheckpoint",
    "Orchestrator",
    "OrchestratorState",
    "PatternKind",
    "PatternSignal",
    "RestoreFailed",
    "RetryDecision",
    "RollbackDecision",
    "RunConfig",
    "RunOutcome",
    "RunResult",
    "Snapshot",
    "TestOutcome",
    "Verdict",
    "WorkspaceError",
]
