"""Utility modules for bvr."""

from .errors import (
    ErrorCategory,
    ErrorInfo,
    classify_exception,
    format_error,
    handle_exception,
    is_debug_mode,
    set_debug_mode,
)

__all__ = [
    "ErrorCategory",
    "ErrorInfo",
    "classify_exception",
    "format_error",
    "handle_exception",
    "is_debug_mode",
    "set_debug_mode",
]
