"""Change producers backed by an agent CLI."""

from .executor import CommandChangeProducer, build_prompt, prompt_agent
from .models import AgentPromptRequest, AgentPromptResponse, RetryCode

__all__ = [
    "AgentPromptRequest",
    "AgentPromptResponse",
    "CommandChangeProducer",
    "RetryCode",
    "build_prompt",
    "prompt_agent",
]
