"""Workspace implementations: git working trees and in-memory file sets."""

from .git import GitWorkspace
from .memory import InMemoryWorkspace

__all__ = [
    "GitWorkspace",
    "InMemoryWorkspace",
]
