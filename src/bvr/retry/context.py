"""Feedback text for retry attempts.

Formats the previous attempt's errors so the change producer can
understand and fix them on the next attempt.
"""

from __future__ import annotations

from collections.abc import Sequence

LOOP_WARNING = (
    "WARNING: The same errors keep repeating across attempts. "
    "Do not refine the previous approach; try a fundamentally different approach."
)
UNCHANGED_NOTE = "Note: the error output is nearly unchanged from the previous attempt."
MAX_ERRORS = 20
MAX_ERROR_LENGTH = 500


def build_retry_feedback(
    errors: Sequence[str],
    failed_attempt: int,
    max_attempts: int,
    loop_detected: bool = False,
    nearly_unchanged: bool = False,
) -> str:
    """Build retry feedback for the change producer.

    Args:
        errors: Error messages from the failed attempt.
        failed_attempt: Index of the attempt that failed (1-indexed).
        max_attempts: Maximum allowed attempts.
        loop_detected: Whether a repeating error pattern is reported.
        nearly_unchanged: Whether the errors barely changed since the attempt before.

    Returns:
        Feedback text, handed verbatim to the producer.
    """
    next_attempt = failed_attempt + 1
    remaining = max(max_attempts - failed_attempt, 0)

    lines = [f"Attempt {failed_attempt} failed with the following issues:", ""]

    if errors:
        for i, error in enumerate(errors[:MAX_ERRORS], 1):
            lines.append(f"{i}. {_truncate(error)}")
        if len(errors) > MAX_ERRORS:
            lines.append(f"... and {len(errors) - MAX_ERRORS} more")
    else:
        lines.append("1. The previous attempt failed without a specific error message.")

    lines.extend(
        [
            "",
            "Please fix these specific issues.",
            f"This is attempt {next_attempt} of {max_attempts} "
            f"({remaining} attempt(s) remaining).",
        ]
    )

    if failed_attempt >= 2:
        lines.append("Focus on addressing the root cause, not just the symptoms.")

    if loop_detected:
        lines.extend(["", LOOP_WARNING])
    elif nearly_unchanged:
        lines.extend(["", UNCHANGED_NOTE])

    return "\n".join(lines)


def _truncate(text: str, limit: int = MAX_ERROR_LENGTH) -> str:
    """Collapse an error to one line and cap its length."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 3] + "..."
