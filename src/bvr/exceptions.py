"""Exceptions raised by the orchestration core.

Producer and test failures are not exceptions: they are recorded as
attempts. These cover programming errors and workspace I/O failures.
"""

from __future__ import annotations


class BVRError(Exception):
    """Base class for all bvr errors."""


class InvalidSequence(BVRError):
    """Raised when an attempt is recorded out of order.

    This is a programming error; a correct orchestrator never triggers it.
    """

    def __init__(self, expected: int, got: int):
        super().__init__(f"Expected attempt index {expected}, got {got}")
        self.expected = expected
        self.got = got


class WorkspaceError(BVRError):
    """Raised when the workspace cannot complete an operation."""


class CheckpointFailed(BVRError):
    """Raised when a snapshot of the workspace could not be created."""

    def __init__(self, attempt_index: int, message: str):
        super().__init__(f"Checkpoint for attempt {attempt_index} failed: {message}")
        self.attempt_index = attempt_index


class RestoreFailed(BVRError):
    """Raised when the workspace rejects a restore request."""

    def __init__(self, snapshot_id: str, message: str = "workspace rejected snapshot"):
        super().__init__(f"Restore to {snapshot_id[:12]} failed: {message}")
        self.snapshot_id = snapshot_id


class NoStableCheckpoint(BVRError):
    """Raised when a rollback is wanted but no stable snapshot exists."""

    def __init__(self, message: str = "no stable checkpoint to roll back to"):
        super().__init__(message)
