"""Agent CLI execution as a change producer."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Sequence
from pathlib import Path

from ..models import AgentOutcome
from .models import AgentPromptRequest, AgentPromptResponse, RetryCode

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("claude", "--print")
DEFAULT_TIMEOUT = 900
FEEDBACK_HEADER = "\n\n## Feedback from Previous Attempt:\n"

# Environment variables safe to pass to the agent subprocess
SAFE_ENV_VARS = [
    "ANTHROPIC_API_KEY",
    "CLAUDE_CODE_PATH",
    "HOME",
    "USER",
    "PATH",
    "SHELL",
    "TERM",
    "LANG",
    "LC_ALL",
]


def get_safe_env() -> dict[str, str]:
    """Get filtered environment for the agent subprocess."""
    env = {k: v for k, v in os.environ.items() if k in SAFE_ENV_VARS}
    env["PYTHONUNBUFFERED"] = "1"
    return env


def build_prompt(task: str, feedback: str | None = None) -> str:
    """Build the agent prompt, appending retry feedback when present."""
    if not feedback:
        return task
    return f"{task}{FEEDBACK_HEADER}{feedback}"


async def prompt_agent(
    request: AgentPromptRequest,
    command: Sequence[str] = DEFAULT_COMMAND,
) -> AgentPromptResponse:
    """Run the agent CLI with the prompt as its final argument.

    Args:
        request: Prompt, working directory and timeout.
        command: Agent executable and leading arguments.

    Returns:
        AgentPromptResponse; never raises for process-level failures.
    """
    cmd = [*command, request.prompt]
    start_time = time.time()

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=request.working_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=get_safe_env(),
        )
    except FileNotFoundError:
        return AgentPromptResponse(
            output="",
            success=False,
            retry_code=RetryCode.AGENT_NOT_FOUND,
            error_message=f"Agent command not found: {command[0]}",
        )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=request.timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return AgentPromptResponse(
            output="",
            success=False,
            retry_code=RetryCode.TIMEOUT_ERROR,
            error_message=f"Agent timeout after {request.timeout}s",
            duration_seconds=time.time() - start_time,
        )

    duration = time.time() - start_time
    output = stdout.decode(errors="replace").strip()

    if process.returncode != 0:
        detail = stderr.decode(errors="replace").strip() or output
        return AgentPromptResponse(
            output=output,
            success=False,
            retry_code=RetryCode.EXECUTION_ERROR,
            error_message=detail[-1000:] or f"Agent exited with code {process.returncode}",
            duration_seconds=duration,
        )

    return AgentPromptResponse(output=output, success=True, duration_seconds=duration)


class CommandChangeProducer:
    """Change producer that shells out to an agent CLI."""

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        cwd: Path | str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        if not command:
            raise ValueError("Agent command must not be empty")
        self.command = list(command)
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout

    async def apply(self, task: str, feedback: str | None = None) -> AgentOutcome:
        request = AgentPromptRequest(
            prompt=build_prompt(task, feedback),
            working_dir=str(self.cwd) if self.cwd else None,
            timeout=self.timeout,
        )
        logger.info(f"Running agent: {self.command[0]}" + (" (with feedback)" if feedback else ""))

        response = await prompt_agent(request, self.command)

        if response.success:
            logger.debug(f"Agent finished in {response.duration_seconds:.1f}s")
            return AgentOutcome(succeeded=True)

        logger.warning(f"Agent failed ({response.retry_code.value}): {response.error_message}")
        return AgentOutcome(succeeded=False, error_message=response.error_message)
