"""Failure recovery for bvr.

This module provides:
- Pattern classification across attempts
- Checkpoint bookkeeping for workspace snapshots
- Rollback decisions targeting the last stable snapshot
"""

from .checkpoints import Checkpointer
from .patterns import PatternAnalysis, PatternClassifier, analyze_patterns
from .rollback import RollbackEngine, suggest_alternatives

__all__ = [
    # Patterns
    "PatternAnalysis",
    "PatternClassifier",
    "analyze_patterns",
    # Checkpoints
    "Checkpointer",
    # Rollback
    "RollbackEngine",
    "suggest_alternatives",
]
