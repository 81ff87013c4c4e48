"""In-memory workspace for dry runs and tests."""

from __future__ import annotations

import hashlib


class InMemoryWorkspace:
    """Dict of path to content with explicit snapshot storage.

    Snapshot ids are "<sequence>-<content hash>", so two snapshots of
    identical content still get distinct ids.
    """

    def __init__(self, files: dict[str, str] | None = None):
        self._files: dict[str, str] = dict(files or {})
        self._snapshots: dict[str, dict[str, str]] = {}
        self._baseline: dict[str, str] = dict(self._files)
        self._sequence = 0

    @property
    def files(self) -> dict[str, str]:
        return dict(self._files)

    @property
    def snapshot_ids(self) -> list[str]:
        return list(self._snapshots)

    def read(self, path: str) -> str | None:
        return self._files.get(path)

    def write(self, path: str, content: str) -> None:
        self._files[path] = content

    def delete(self, path: str) -> None:
        self._files.pop(path, None)

    def snapshot(self, message: str) -> str:
        self._sequence += 1
        digest = hashlib.sha256()
        for path in sorted(self._files):
            digest.update(path.encode())
            digest.update(b"\0")
            digest.update(self._files[path].encode())
            digest.update(b"\0")
        snapshot_id = f"{self._sequence:04d}-{digest.hexdigest()[:12]}"
        self._snapshots[snapshot_id] = dict(self._files)
        self._baseline = dict(self._files)
        return snapshot_id

    def restore(self, snapshot_id: str) -> bool:
        state = self._snapshots.get(snapshot_id)
        if state is None:
            return False
        self._files = dict(state)
        self._baseline = dict(state)
        return True

    def changed_paths(self) -> list[str]:
        """Paths added, modified or deleted since the last snapshot or restore."""
        paths = set(self._files) | set(self._baseline)
        return sorted(p for p in paths if self._files.get(p) != self._baseline.get(p))
