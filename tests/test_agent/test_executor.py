"""Unit tests for agent executor."""

import asyncio
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from bvr.agent.executor import (
    FEEDBACK_HEADER,
    SAFE_ENV_VARS,
    CommandChangeProducer,
    build_prompt,
    get_safe_env,
    prompt_agent,
)
from bvr.agent.models import AgentPromptRequest, RetryCode
from bvr.interfaces import ChangeProducer

# Writes the prompt (last argv entry) to prompt.txt in the working directory
WRITE_PROMPT = [
    sys.executable,
    "-c",
    "import sys, pathlib; pathlib.Path('prompt.txt').write_text(sys.argv[1])",
]


class TestGetSafeEnv:
    """Test get_safe_env function."""

    def test_filters_environment_variables(self):
        with patch.dict(
            os.environ,
            {
                "ANTHROPIC_API_KEY": "test-key",
                "HOME": "/home/user",
                "PATH": "/usr/bin",
                "DANGEROUS_VAR": "should-not-appear",
            },
            clear=True,
        ):
            env = get_safe_env()
            assert env["ANTHROPIC_API_KEY"] == "test-key"
            assert "PATH" in env
            assert env["PYTHONUNBUFFERED"] == "1"
            assert "DANGEROUS_VAR" not in env

    def test_includes_all_safe_vars(self):
        with patch.dict(os.environ, {var: f"value-{var}" for var in SAFE_ENV_VARS}, clear=True):
            env = get_safe_env()
            for var in SAFE_ENV_VARS:
                assert var in env


class TestBuildPrompt:
    """Test build_prompt function."""

    def test_without_feedback(self):
        assert build_prompt("Fix the parser") == "Fix the parser"

    def test_empty_feedback_ignored(self):
        assert build_prompt("Fix the parser", "") == "Fix the parser"

    def test_with_feedback(self):
        prompt = build_prompt("Fix the parser", "test_parse failed")
        assert prompt == f"Fix the parser{FEEDBACK_HEADER}test_parse failed"


class TestPromptAgent:
    """Test prompt_agent against real subprocesses."""

    def test_success(self, tmp_path):
        request = AgentPromptRequest(prompt="hello", working_dir=str(tmp_path), timeout=30)

        response = asyncio.run(prompt_agent(request, [sys.executable, "-c", "print('done')"]))

        assert response.success is True
        assert response.output == "done"
        assert response.retry_code == RetryCode.NONE

    def test_nonzero_exit_reports_stderr(self, tmp_path):
        request = AgentPromptRequest(prompt="hello", working_dir=str(tmp_path), timeout=30)
        command = [sys.executable, "-c", "import sys; sys.stderr.write('rate limited'); sys.exit(3)"]

        response = asyncio.run(prompt_agent(request, command))

        assert response.success is False
        assert response.retry_code == RetryCode.EXECUTION_ERROR
        assert response.error_message == "rate limited"

    def test_missing_binary(self, tmp_path):
        request = AgentPromptRequest(prompt="hello", working_dir=str(tmp_path))

        response = asyncio.run(prompt_agent(request, ["bvr-no-such-agent-binary"]))

        assert response.success is False
        assert response.retry_code == RetryCode.AGENT_NOT_FOUND
        assert response.error_message == "Agent command not found: bvr-no-such-agent-binary"

    def test_timeout(self, tmp_path):
        request = AgentPromptRequest(prompt="hello", working_dir=str(tmp_path), timeout=1)
        command = [sys.executable, "-c", "import time; time.sleep(10)"]

        response = asyncio.run(prompt_agent(request, command))

        assert response.success is False
        assert response.retry_code == RetryCode.TIMEOUT_ERROR
        assert response.error_message == "Agent timeout after 1s"


class TestCommandChangeProducer:
    """Test the agent-backed change producer."""

    def test_satisfies_protocol(self):
        assert isinstance(CommandChangeProducer(), ChangeProducer)

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            CommandChangeProducer(command=[])

    def test_runs_in_workspace_with_prompt(self, tmp_path):
        producer = CommandChangeProducer(WRITE_PROMPT, cwd=tmp_path, timeout=30)

        outcome = asyncio.run(producer.apply("Add logging"))

        assert outcome.succeeded is True
        assert outcome.error_message is None
        assert (tmp_path / "prompt.txt").read_text() == "Add logging"

    def test_feedback_appended(self, tmp_path):
        producer = CommandChangeProducer(WRITE_PROMPT, cwd=tmp_path, timeout=30)

        asyncio.run(producer.apply("Add logging", "test_log failed"))

        written = (tmp_path / "prompt.txt").read_text()
        assert written.startswith("Add logging")
        assert "## Feedback from Previous Attempt:" in written
        assert written.endswith("test_log failed")

    def test_failure_outcome(self, tmp_path):
        producer = CommandChangeProducer(["bvr-no-such-agent-binary"], cwd=Path(tmp_path))

        outcome = asyncio.run(producer.apply("Add logging"))

        assert outcome.succeeded is False
        assert "not found" in outcome.error_message
