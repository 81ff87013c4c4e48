"""Checkpoint bookkeeping for workspace snapshots.

The workspace owns the actual state; the checkpointer only records which
snapshot id belongs to which attempt and whether it was stable, so that:
- The last known-good state can be located
- The workspace can be rolled back to it
- The orchestrator can ask whether anything changed at all
"""

from __future__ import annotations

import logging

from ..exceptions import CheckpointFailed, RestoreFailed, WorkspaceError
from ..interfaces import Workspace
from ..models import Snapshot

logger = logging.getLogger(__name__)


class Checkpointer:
    """Manages snapshots for one run.

    Snapshots are totally ordered by attempt index, with at most one per attempt.
    """

    def __init__(self, workspace: Workspace):
        """Initialize the checkpointer.

        Args:
            workspace: The workspace that materializes and restores snapshots.
        """
        self.workspace = workspace
        self._snapshots: list[Snapshot] = []

    def snapshot(self, attempt_index: int, is_stable: bool, message: str = "") -> Snapshot:
        """Ask the workspace for a checkpoint of its current state.

        Args:
            attempt_index: The attempt this snapshot documents.
            is_stable: Whether the attempt's tests passed.
            message: Optional description passed to the workspace.

        Returns:
            The recorded Snapshot.

        Raises:
            CheckpointFailed: If the workspace cannot snapshot, or the attempt
                already has a snapshot or is older than the latest one.
        """
        if self._snapshots and attempt_index <= self._snapshots[-1].attempt_index:
            raise CheckpointFailed(
                attempt_index,
                f"snapshot already exists up to attempt {self._snapshots[-1].attempt_index}",
            )

        text = message or f"Attempt {attempt_index}"
        try:
            snapshot_id = self.workspace.snapshot(text)
        except Exception as e:
            raise CheckpointFailed(attempt_index, str(e)) from e

        if not snapshot_id:
            raise CheckpointFailed(attempt_index, "workspace returned no snapshot id")

        snapshot = Snapshot(
            id=snapshot_id,
            attempt_index=attempt_index,
            is_stable=is_stable,
            message=text,
        )
        self._snapshots.append(snapshot)

        label = "stable" if is_stable else "unstable"
        logger.info(f"Created {label} snapshot {snapshot.short_id} for attempt {attempt_index}")
        return snapshot

    def last_stable(self) -> Snapshot | None:
        """Snapshot with the greatest attempt index among stable ones."""
        for snapshot in reversed(self._snapshots):
            if snapshot.is_stable:
                return snapshot
        return None

    def latest(self) -> Snapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    def history(self) -> list[Snapshot]:
        """All snapshots, oldest first."""
        return list(self._snapshots)

    def get(self, snapshot_id: str) -> Snapshot | None:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def restore(self, snapshot_id: str) -> None:
        """Reset the workspace to a snapshot.

        Raises:
            RestoreFailed: If the workspace rejects the id or errors out.
        """
        logger.info(f"Rolling back to snapshot {snapshot_id[:8]}")
        try:
            restored = self.workspace.restore(snapshot_id)
        except Exception as e:
            raise RestoreFailed(snapshot_id, str(e)) from e

        if not restored:
            raise RestoreFailed(snapshot_id)

        logger.info(f"Rolled back to snapshot {snapshot_id[:8]}")

    def changed_paths(self) -> list[str]:
        """Paths the workspace reports as changed since the last snapshot.

        Raises:
            WorkspaceError: If the workspace cannot report its changes.
        """
        try:
            return list(self.workspace.changed_paths())
        except WorkspaceError:
            raise
        except Exception as e:
            raise WorkspaceError(f"Could not list changed paths: {e}") from e
