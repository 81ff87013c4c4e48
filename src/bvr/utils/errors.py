"""Error handling utilities for the bvr CLI.

Provides consistent error formatting with:
- Human-friendly messages
- Suggested fixes
- Hidden stack traces (unless debug mode)
"""

from __future__ import annotations

import os
import subprocess
import sys
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from rich.markup import escape

from ..exceptions import (
    CheckpointFailed,
    InvalidSequence,
    NoStableCheckpoint,
    RestoreFailed,
    WorkspaceError,
)

if TYPE_CHECKING:
    from rich.console import Console

# Debug mode enabled by BVR_DEBUG=1 or --debug flag
_debug_mode = os.environ.get("BVR_DEBUG", "0") == "1"


class ErrorCategory(str, Enum):
    """Categories of errors for consistent formatting."""

    CONFIG = "config"  # Configuration errors
    WORKSPACE = "workspace"  # Git and snapshot errors
    AGENT = "agent"  # Agent CLI errors
    TESTING = "testing"  # Test command errors
    RUN = "run"  # Orchestration errors
    INTERNAL = "internal"  # Internal/unexpected errors


@dataclass
class ErrorInfo:
    """Structured error information for consistent display."""

    message: str
    category: ErrorCategory
    suggestion: str | None = None
    details: str | None = None
    original_error: Exception | None = None


def set_debug_mode(enabled: bool) -> None:
    """Enable or disable debug mode for verbose error output."""
    global _debug_mode
    _debug_mode = enabled


def is_debug_mode() -> bool:
    return _debug_mode


def format_error(error: ErrorInfo, console: Console) -> None:
    """Display an error with consistent styling.

    Args:
        error: Structured error information
        console: Rich console for output
    """
    console.print(f"[bold red]Error:[/bold red] {escape(error.message)}")

    if error.details and (_debug_mode or len(error.details) < 200):
        console.print(f"[dim]{escape(error.details)}[/dim]")

    if error.suggestion:
        console.print()
        console.print(f"[yellow]Suggestion:[/yellow] {error.suggestion}")

    if _debug_mode and error.original_error:
        console.print()
        console.print("[dim]Stack trace (debug mode):[/dim]")
        tb_lines = traceback.format_exception(
            type(error.original_error),
            error.original_error,
            error.original_error.__traceback__,
        )
        for line in tb_lines:
            console.print(f"[dim]{escape(line.rstrip())}[/dim]")

    if not _debug_mode and error.original_error:
        console.print()
        console.print("[dim]Set BVR_DEBUG=1 or use --debug for more details[/dim]")


def error_config_invalid(key: str, value: str | None = None, expected: str | None = None) -> ErrorInfo:
    """Create error info for invalid configuration values."""
    details = None
    if value is not None and expected is not None:
        details = f"Got '{value}', expected {expected}"

    return ErrorInfo(
        message=f"Invalid configuration: {key}",
        category=ErrorCategory.CONFIG,
        suggestion="Run 'bvr config keys' to list valid keys",
        details=details,
    )


def error_run_not_found(run_id: str) -> ErrorInfo:
    return ErrorInfo(
        message=f"Run not found: {run_id}",
        category=ErrorCategory.RUN,
        suggestion="Run 'bvr history' to see recorded runs",
    )


def error_workspace(message: str, original: Exception | None = None) -> ErrorInfo:
    suggestion = "Check that the path is a git repository with at least one commit"
    if "not found" in message.lower():
        suggestion = "Install git from https://git-scm.com/"
    return ErrorInfo(
        message=f"Workspace error: {message}",
        category=ErrorCategory.WORKSPACE,
        suggestion=suggestion,
        original_error=original,
    )


def error_internal(message: str, original: Exception | None = None) -> ErrorInfo:
    return ErrorInfo(
        message=f"Internal error: {message}",
        category=ErrorCategory.INTERNAL,
        suggestion="This may be a bug; rerun with --debug and report the stack trace",
        original_error=original,
    )


def classify_exception(exception: Exception, context: str = "operation") -> ErrorInfo:
    """Classify an exception into an ErrorInfo.

    Args:
        exception: The exception to classify
        context: Description of what was being done

    Returns:
        ErrorInfo with appropriate categorization
    """
    if isinstance(exception, (WorkspaceError, CheckpointFailed, RestoreFailed, NoStableCheckpoint)):
        return error_workspace(str(exception), exception)

    if isinstance(exception, subprocess.CalledProcessError):
        return error_workspace(f"{context}: {exception}", exception)

    if isinstance(exception, InvalidSequence):
        return error_internal(f"{context}: {exception}", exception)

    if isinstance(exception, FileNotFoundError):
        return ErrorInfo(
            message=f"Not found: {exception.filename or exception}",
            category=ErrorCategory.AGENT,
            suggestion="Check the agent command with 'bvr config show'",
            original_error=exception,
        )

    if isinstance(exception, PermissionError):
        return ErrorInfo(
            message=f"Permission denied: {exception}",
            category=ErrorCategory.WORKSPACE,
            suggestion="Check file permissions or run with appropriate access",
            original_error=exception,
        )

    if isinstance(exception, (TimeoutError, ConnectionError)):
        return ErrorInfo(
            message=f"{context} timed out or lost its connection: {exception}",
            category=ErrorCategory.AGENT,
            suggestion="Increase agent.timeout or testing.timeout",
            original_error=exception,
        )

    if isinstance(exception, ValueError) and any(
        word in str(exception).lower() for word in ("config", "toml", "attempts", "threshold")
    ):
        return ErrorInfo(
            message=f"Configuration error: {exception}",
            category=ErrorCategory.CONFIG,
            suggestion="Run 'bvr config show' to view current configuration",
            original_error=exception,
        )

    return error_internal(f"{context}: {exception}", exception)


def handle_exception(
    console: Console,
    exception: Exception,
    context: str = "operation",
    exit_code: int = 1,
    exit_on_error: bool = True,
) -> ErrorInfo:
    """Classify and display an exception, exiting unless told otherwise."""
    error = classify_exception(exception, context)
    format_error(error, console)

    if exit_on_error:
        sys.exit(exit_code)

    return error
