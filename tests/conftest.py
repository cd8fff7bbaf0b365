"""
Pytest configuration and shared fixtures.
"""

import asyncio
import json
import os
from typing import Any

import pytest
from aiorch.core.config import OrchestratorConfig, reset_settings
from aiorch.models.contracts import (
    AssistantMessage,
    LLMChoice,
    LLMRequest,
    LLMResponse,
    LLMToolCall,
    LLMUsage,
    ToolExecutionContext,
)
from aiorch.models.enums import FinishReason
from aiorch.services.in_memory import InMemoryServices
from aiorch.tools.calculator import CALCULATOR_TOOL


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate every test from the global settings singleton and AIORCH_* env."""
    for key in list(os.environ):
        if key.startswith("AIORCH_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


class ScriptedLLM:
    """
    Completion client double that replays canned responses in order.

    The last response repeats once the script runs out. Every request is
    recorded so tests can inspect what the loop sent.
    """

    def __init__(self, responses: list[Any], delay: float = 0.0):
        self.responses = list(responses)
        self.requests: list[LLMRequest] = []
        self.delay = delay

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def complete(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.responses:
            raise AssertionError("ScriptedLLM ran out of responses")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def build_response(
    content: str = "",
    tool_calls: list[tuple[str, str, Any]] | None = None,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    model: str = "test-model",
    finish_reason: FinishReason | None = None,
) -> LLMResponse:
    """LLMResponse with one choice; tool_calls are (id, name, arguments) tuples."""
    calls = tuple(
        LLMToolCall(
            id=call_id,
            name=name,
            arguments=arguments if isinstance(arguments, str) else json.dumps(arguments),
        )
        for call_id, name, arguments in (tool_calls or [])
    )
    if finish_reason is None:
        finish_reason = FinishReason.TOOL_CALLS if calls else FinishReason.STOP
    return LLMResponse(
        id="resp-1",
        model=model,
        choices=[
            LLMChoice(
                message=AssistantMessage(content=content, tool_calls=calls),
                finish_reason=finish_reason,
            )
        ],
        usage=LLMUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


@pytest.fixture
def make_response():
    """Factory for scripted completion responses."""
    return build_response


@pytest.fixture
def scripted_llm():
    """Factory: scripted_llm([response, ...]) -> ScriptedLLM."""
    return ScriptedLLM


@pytest.fixture
def tool_context():
    """Execution context used for direct executor calls."""
    return ToolExecutionContext(user_id="user-1", chat_id="chat-1", request_id="req-test")


@pytest.fixture
def orchestrator_config():
    """Small, fast policy for loop and orchestrator tests."""
    return OrchestratorConfig(
        model="test-model",
        max_tool_calls=10,
        max_iterations=5,
        tool_call_timeout=1.0,
        total_timeout=5.0,
    )


@pytest.fixture
def services():
    """In-memory collaborators with one chat owned by user-1 and the calculator tool."""
    svc = InMemoryServices()
    svc.create_chat("user-1", chat_id="chat-1")
    svc.tools = [CALCULATOR_TOOL]
    return svc
