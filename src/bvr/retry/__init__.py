"""Smart retry system for bvr.

This module provides:
- Bounded retry decisions guided by failure patterns
- Error feedback injection for the next attempt
"""

from .context import build_retry_feedback
from .policy import RetryPolicy

__all__ = [
    "build_retry_feedback",
    "RetryPolicy",
]
