"""Capabilities the orchestrator consumes from its collaborators.

The core never talks to an agent, a test framework or version control
directly; it only sees these three protocols.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import AgentOutcome, TestOutcome


@runtime_checkable
class ChangeProducer(Protocol):
    """Anything that edits the workspace given an instruction."""

    async def apply(self, task: str, feedback: str | None = None) -> AgentOutcome:
        """Apply the task, with feedback from earlier attempts when available.

        Must be safe to call again on the same workspace.
        """
        ...


@runtime_checkable
class TestRunner(Protocol):
    """Runs the tests covering whatever the producer last changed.

    A project without meaningful tests reports ``TestOutcome(passed=True)``.
    """

    async def run(self) -> TestOutcome: ...


@runtime_checkable
class Workspace(Protocol):
    """Checkpoint storage backing the checkpointer."""

    def snapshot(self, message: str) -> str:
        """Materialize a checkpoint of the current state and return its id."""
        ...

    def restore(self, snapshot_id: str) -> bool:
        """Reset to a checkpoint. Returns False if the id is unknown."""
        ...

    def changed_paths(self) -> list[str]:
        """Paths changed since the last checkpoint."""
        ...
