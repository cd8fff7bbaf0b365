"""
Pydantic models defining API contracts for all components.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .context import (
    AIContext,
    ConversationEntry,
    KnowledgeFragment,
    MemoryFragment,
    UserPreferences,
)
from .enums import FinishReason, MessageRole, ToolCallStatus, ToolRouteType
from .tool import ToolDefinition

# ============================================================================
# LLM Client Contracts
# ============================================================================


class LLMToolCall(BaseModel):
    """A tool-call request emitted inside an assistant turn."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = Field(default="", description="Raw JSON argument payload")

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class SystemMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system"] = "system"
    content: str

    def to_wire(self) -> dict[str, Any]:
        return {"role": "system", "content": self.content}


class UserMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    content: str

    def to_wire(self) -> dict[str, Any]:
        return {"role": "user", "content": self.content}


class AssistantMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["assistant"] = "assistant"
    content: str = ""
    tool_calls: tuple[LLMToolCall, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            wire["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        return wire


class ToolMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["tool"] = "tool"
    content: str = Field(..., description="Serialized tool result")
    tool_call_id: str

    def to_wire(self) -> dict[str, Any]:
        return {"role": "tool", "content": self.content, "tool_call_id": self.tool_call_id}


LLMMessage = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

ToolChoice = Union[Literal["none", "auto", "required"], dict[str, Any]]


class LLMToolDefinition(BaseModel):
    """Tool schema in the completion backend's function-calling shape."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict, description="JSON Schema")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class LLMRequest(BaseModel):
    """Request for LLM completion."""

    model: str = Field(..., description="Model identifier (LiteLLM format)")
    messages: list[LLMMessage] = Field(..., min_length=1)
    tools: list[LLMToolDefinition] | None = None
    tool_choice: ToolChoice | None = None
    max_tokens: int | None = Field(default=None, ge=1)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)

    @model_validator(mode="after")
    def validate_tool_correlation(self) -> "LLMRequest":
        """Every tool message must answer a call from the immediately preceding assistant turn."""
        open_ids: set[str] | None = None
        for msg in self.messages:
            if isinstance(msg, ToolMessage):
                if open_ids is None or msg.tool_call_id not in open_ids:
                    raise ValueError(
                        f"Tool message references unknown tool_call_id '{msg.tool_call_id}'"
                    )
            elif isinstance(msg, AssistantMessage) and msg.tool_calls:
                open_ids = {tc.id for tc in msg.tool_calls}
            else:
                open_ids = None
        return self

    def wire_messages(self) -> list[dict[str, Any]]:
        return [msg.to_wire() for msg in self.messages]


class LLMUsage(BaseModel):
    """Token usage counters. Absent backend usage is normalized to zeros."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "LLMUsage") -> "LLMUsage":
        return LLMUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class LLMChoice(BaseModel):
    index: int = 0
    message: AssistantMessage
    finish_reason: FinishReason = FinishReason.STOP


class LLMResponse(BaseModel):
    """Response from LLM completion."""

    id: str = ""
    model: str
    choices: list[LLMChoice] = Field(default_factory=list)
    usage: LLMUsage = Field(default_factory=LLMUsage)


class LLMToolCallDelta(BaseModel):
    """Partial tool-call fragment from a streaming chunk."""

    index: int = 0
    id: str = ""
    name: str = ""
    arguments: str = ""


class LLMStreamDelta(BaseModel):
    role: MessageRole | None = None
    content: str | None = None
    tool_calls: tuple[LLMToolCallDelta, ...] = ()


class LLMStreamChoice(BaseModel):
    index: int = 0
    delta: LLMStreamDelta = Field(default_factory=LLMStreamDelta)
    finish_reason: FinishReason | None = None


class LLMStreamChunk(BaseModel):
    """Incremental streaming chunk. The terminal chunk carries the finish reason."""

    id: str = ""
    model: str = ""
    choices: list[LLMStreamChoice] = Field(default_factory=list)
    usage: LLMUsage | None = None

    @property
    def finish_reason(self) -> FinishReason | None:
        for choice in self.choices:
            if choice.finish_reason is not None:
                return choice.finish_reason
        return None


# ============================================================================
# Tool Executor Contracts
# ============================================================================


class ToolExecutionContext(BaseModel):
    """Context passed to tool handlers during execution."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    chat_id: str
    request_id: str
    timeout: float | None = Field(
        default=None, gt=0, description="Per-call timeout in seconds (executor default if unset)"
    )


class ToolRoute(BaseModel):
    """How to execute a named tool."""

    model_config = ConfigDict(frozen=True)

    type: ToolRouteType
    server: str | None = Field(default=None, description="MCP server name")
    mcp_tool_name: str | None = Field(default=None, description="Tool name on the MCP server")
    workflow_id: str | None = Field(default=None, description="Workflow id for n8n routes")


class ToolExecutionResult(BaseModel):
    """Uniform outcome of ``ToolExecutor.execute``. Never raised, always returned."""

    success: bool
    output: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None
    duration_ms: float = 0.0

    def to_tool_content(self) -> str:
        """Serialize for the ``tool`` message fed back to the model."""
        if self.success:
            return json.dumps(self.output, default=str)
        return json.dumps({"error": self.error_message or "Tool execution failed"})


class ToolCallRecord(BaseModel):
    """One completed tool invocation, accumulated across loop iterations."""

    tool_call_id: str
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] | None = None
    status: ToolCallStatus
    error_message: str | None = None
    duration_ms: float = 0.0


# ============================================================================
# Prompt Builder Contracts
# ============================================================================


class PromptBuilderInput(BaseModel):
    """Already-fetched inputs for prompt assembly."""

    system_prompt: str | None = None
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    memories: list[MemoryFragment] = Field(default_factory=list)
    knowledge: list[KnowledgeFragment] = Field(default_factory=list)
    conversation_history: list[ConversationEntry] = Field(default_factory=list)
    user_message: str
    tools: list[ToolDefinition] = Field(default_factory=list)

    @classmethod
    def from_context(cls, context: AIContext, user_message: str) -> "PromptBuilderInput":
        return cls(
            system_prompt=context.system_prompt,
            preferences=context.preferences,
            memories=list(context.memories),
            knowledge=list(context.knowledge),
            conversation_history=list(context.messages),
            user_message=user_message,
            tools=list(context.tools),
        )


class PromptBuilderOutput(BaseModel):
    messages: list[LLMMessage]
    tools: list[LLMToolDefinition]
    estimated_tokens: int = Field(..., description="Approximate, not billing-accurate")
