"""Git-backed workspace.

Snapshots are commits on the current branch; restoring is a hard reset
followed by removal of untracked files.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from ..exceptions import WorkspaceError

logger = logging.getLogger(__name__)

COMMIT_PREFIX = "[bvr]"


class GitWorkspace:
    """Workspace implementation on top of a git working tree.

    Args:
        path: Root of the git working tree.
        ignore: Path prefixes never snapshotted, reported or cleaned
            (typically the run state directory).
    """

    def __init__(self, path: Path | str = ".", ignore: Sequence[str] = ()):
        self.path = Path(path)
        self.ignore = tuple(p.rstrip("/") for p in ignore if p)

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=check,
            )
        except FileNotFoundError as e:
            raise WorkspaceError("git executable not found") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()
            raise WorkspaceError(f"git {args[0]} failed: {detail}") from e

    def _pathspec(self) -> list[str]:
        if not self.ignore:
            return []
        return ["--", ".", *(f":(exclude){p}" for p in self.ignore)]

    def _ignored(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.ignore)

    def current_commit(self) -> str | None:
        """Full hash of HEAD, or None for a repository without commits."""
        result = self._git("rev-parse", "--verify", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_clean(self) -> bool:
        return not self.changed_paths()

    def snapshot(self, message: str) -> str:
        """Commit all changes and return the commit hash.

        With nothing to commit the current HEAD is returned instead.
        """
        self._git("add", "-A", *self._pathspec())

        staged = self._git("diff", "--cached", "--quiet", check=False)
        if staged.returncode == 0:
            head = self.current_commit()
            if head is None:
                raise WorkspaceError("Nothing to commit and repository has no HEAD")
            logger.debug(f"Nothing to commit; reusing HEAD {head[:8]}")
            return head

        self._git("commit", "-m", f"{COMMIT_PREFIX} {message}")
        head = self.current_commit()
        if head is None:
            raise WorkspaceError("Commit succeeded but HEAD is missing")
        logger.debug(f"Committed snapshot {head[:8]}: {message}")
        return head

    def restore(self, snapshot_id: str) -> bool:
        """Hard-reset to the snapshot and remove untracked files."""
        clean_args = ["clean", "-fd"]
        for prefix in self.ignore:
            clean_args.extend(["-e", prefix])

        try:
            self._git("reset", "--hard", snapshot_id)
            self._git(*clean_args)
        except WorkspaceError as e:
            logger.error(f"Restore to {snapshot_id[:8]} failed: {e}")
            return False
        return True

    def changed_paths(self) -> list[str]:
        """Paths with uncommitted changes, from ``git status --porcelain``."""
        result = self._git("status", "--porcelain")
        paths: list[str] = []
        for line in result.stdout.splitlines():
            if len(line) < 4:
                continue
            path = line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            path = path.strip('"')
            if not self._ignored(path):
                paths.append(path)
        return paths
