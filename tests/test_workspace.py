"""Tests for git-backed and in-memory workspaces."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from bvr.exceptions import WorkspaceError
from bvr.interfaces import Workspace
from bvr.workspace import GitWorkspace, InMemoryWorkspace

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(path: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=path, capture_output=True, text=True, check=True)
    return result.stdout.strip()


@pytest.fixture
def empty_repo(tmp_path: Path) -> Path:
    """Initialized git repository without commits."""
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init")
    _git(repo, "config", "user.email", "dev@example.com")
    _git(repo, "config", "user.name", "Dev")
    _git(repo, "config", "commit.gpgsign", "false")
    return repo


@pytest.fixture
def git_repo(empty_repo: Path) -> Path:
    """Git repository with one commit containing app.py."""
    (empty_repo / "app.py").write_text("print('v1')\n")
    _git(empty_repo, "add", "-A")
    _git(empty_repo, "commit", "-m", "initial")
    return empty_repo


# =============================================================================
# In-memory workspace
# =============================================================================


class TestInMemoryWorkspace:
    """Tests for the dict-backed workspace."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryWorkspace(), Workspace)

    def test_changed_paths_since_snapshot(self) -> None:
        workspace = InMemoryWorkspace({"a.py": "1", "b.py": "2"})
        workspace.write("a.py", "changed")
        workspace.delete("b.py")
        workspace.write("c.py", "new")

        assert workspace.changed_paths() == ["a.py", "b.py", "c.py"]

        workspace.snapshot("after edits")
        assert workspace.changed_paths() == []

    def test_rewriting_same_content_is_no_change(self) -> None:
        workspace = InMemoryWorkspace({"a.py": "1"})
        workspace.write("a.py", "1")
        assert workspace.changed_paths() == []

    def test_snapshot_ids_distinct_for_same_content(self) -> None:
        workspace = InMemoryWorkspace({"a.py": "1"})
        first = workspace.snapshot("one")
        second = workspace.snapshot("two")

        assert first != second
        assert first.split("-", 1)[1] == second.split("-", 1)[1]

    def test_restore(self) -> None:
        workspace = InMemoryWorkspace({"a.py": "good"})
        snapshot_id = workspace.snapshot("good state")
        workspace.write("a.py", "bad")
        workspace.write("junk.py", "x")

        assert workspace.restore(snapshot_id) is True
        assert workspace.files == {"a.py": "good"}
        assert workspace.changed_paths() == []

    def test_restore_unknown_id(self) -> None:
        workspace = InMemoryWorkspace({"a.py": "1"})
        assert workspace.restore("0001-deadbeef") is False
        assert workspace.files == {"a.py": "1"}

    def test_files_is_a_copy(self) -> None:
        workspace = InMemoryWorkspace({"a.py": "1"})
        workspace.files["a.py"] = "mutated"
        assert workspace.read("a.py") == "1"


# =============================================================================
# Git workspace
# =============================================================================


@requires_git
class TestGitWorkspace:
    """Tests for the git-backed workspace."""

    def test_satisfies_protocol(self, git_repo: Path) -> None:
        assert isinstance(GitWorkspace(git_repo), Workspace)

    def test_snapshot_commits_changes(self, git_repo: Path) -> None:
        workspace = GitWorkspace(git_repo)
        (git_repo / "app.py").write_text("print('v2')\n")

        snapshot_id = workspace.snapshot("Attempt 1")

        assert snapshot_id == _git(git_repo, "rev-parse", "HEAD")
        assert _git(git_repo, "log", "-1", "--format=%s") == "[bvr] Attempt 1"
        assert workspace.is_clean()

    def test_snapshot_nothing_to_commit_returns_head(self, git_repo: Path) -> None:
        workspace = GitWorkspace(git_repo)
        head = workspace.current_commit()

        assert workspace.snapshot("no changes") == head
        assert _git(git_repo, "rev-list", "--count", "HEAD") == "1"

    def test_snapshot_empty_repository(self, empty_repo: Path) -> None:
        workspace = GitWorkspace(empty_repo)

        assert workspace.current_commit() is None
        with pytest.raises(WorkspaceError):
            workspace.snapshot("nothing here")

    def test_changed_paths(self, git_repo: Path) -> None:
        workspace = GitWorkspace(git_repo)
        assert workspace.changed_paths() == []

        (git_repo / "app.py").write_text("print('v2')\n")
        (git_repo / "new.py").write_text("x = 1\n")

        assert sorted(workspace.changed_paths()) == ["app.py", "new.py"]

    def test_changed_paths_reports_rename_target(self, git_repo: Path) -> None:
        _git(git_repo, "mv", "app.py", "main.py")

        assert GitWorkspace(git_repo).changed_paths() == ["main.py"]

    def test_restore_resets_and_cleans(self, git_repo: Path) -> None:
        workspace = GitWorkspace(git_repo)
        stable = workspace.current_commit()
        (git_repo / "app.py").write_text("broken\n")
        workspace.snapshot("Attempt 1")
        (git_repo / "untracked.py").write_text("junk\n")

        assert workspace.restore(stable) is True

        assert (git_repo / "app.py").read_text() == "print('v1')\n"
        assert not (git_repo / "untracked.py").exists()
        assert workspace.current_commit() == stable

    def test_restore_unknown_commit(self, git_repo: Path) -> None:
        assert GitWorkspace(git_repo).restore("0" * 40) is False

    def test_ignored_state_dir(self, git_repo: Path) -> None:
        workspace = GitWorkspace(git_repo, ignore=[".bvr"])
        state_file = git_repo / ".bvr" / "runs" / "abc" / "run_state.json"
        state_file.parent.mkdir(parents=True)
        state_file.write_text("{}")

        assert workspace.changed_paths() == []

        (git_repo / "app.py").write_text("print('v2')\n")
        workspace.snapshot("Attempt 1")
        tracked = _git(git_repo, "ls-files")
        assert ".bvr" not in tracked

        assert workspace.restore(workspace.current_commit()) is True
        assert state_file.exists()

    def test_not_a_repository(self, tmp_path: Path) -> None:
        workspace = GitWorkspace(tmp_path)

        assert workspace.current_commit() is None
        with pytest.raises(WorkspaceError):
            workspace.changed_paths()
