"""Unit tests for agent data models."""

import pytest
from pydantic import ValidationError

from bvr.agent.models import AgentPromptRequest, AgentPromptResponse, RetryCode


class TestRetryCode:
    def test_values(self):
        assert RetryCode.NONE.value == "none"
        assert RetryCode.AGENT_NOT_FOUND.value == "agent_not_found"
        assert RetryCode.TIMEOUT_ERROR.value == "timeout_error"
        assert RetryCode.EXECUTION_ERROR.value == "execution_error"


class TestAgentPromptRequest:
    def test_defaults(self):
        request = AgentPromptRequest(prompt="Fix it")
        assert request.working_dir is None
        assert request.timeout == 900

    def test_prompt_required(self):
        with pytest.raises(ValidationError):
            AgentPromptRequest()


class TestAgentPromptResponse:
    def test_defaults(self):
        response = AgentPromptResponse(output="ok", success=True)
        assert response.retry_code == RetryCode.NONE
        assert response.error_message is None
        assert response.duration_seconds == 0.0

    def test_serialization(self):
        response = AgentPromptResponse(
            output="",
            success=False,
            retry_code=RetryCode.TIMEOUT_ERROR,
            error_message="Agent timeout after 5s",
        )
        data = response.model_dump()
        assert data["retry_code"] == "timeout_error"
        assert AgentPromptResponse(**data) == response
