"""Data models for change producer execution."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class RetryCode(str, Enum):
    NONE = "none"
    AGENT_NOT_FOUND = "agent_not_found"
    TIMEOUT_ERROR = "timeout_error"
    EXECUTION_ERROR = "execution_error"


class AgentPromptRequest(BaseModel):
    """Request to execute a prompt with the agent CLI."""

    prompt: str
    working_dir: str | None = None
    timeout: int = 900


class AgentPromptResponse(BaseModel):
    """Response from agent execution."""

    output: str
    success: bool
    retry_code: RetryCode = RetryCode.NONE
    error_message: str | None = None
    duration_seconds: float = 0.0
