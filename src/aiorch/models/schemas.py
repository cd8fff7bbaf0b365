"""
Core Pydantic schemas for the orchestration pipeline.

These schemas define the data contracts at the orchestrator boundary: the
request accepted by ``Orchestrator.run``, the aggregated result it returns,
the response persisted through the chat collaborator and the events emitted
by ``Orchestrator.stream``.
"""

import time
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .contracts import LLMUsage, ToolCallRecord
from .enums import StoppedReason, ToolCallStatus


class OrchestratorInput(BaseModel):
    """Input to the orchestrator for one user turn."""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_message": "What is 2+2?",
            "chat_id": "chat-123",
            "user_id": "user-456",
            "config_overrides": {"model": "openrouter/openai/gpt-4o-mini"},
        }
    })

    user_message: str = Field(..., description="The new user message")
    chat_id: str = Field(..., description="Target chat id")
    user_id: str = Field(..., description="Requesting user id")
    config_overrides: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Per-request overrides merged over the base OrchestratorConfig"
    )

    @field_validator("user_message")
    @classmethod
    def validate_user_message(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("user_message must not be empty")
        return v

    @field_validator("chat_id", "user_id")
    @classmethod
    def validate_ids(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("identifier must not be empty")
        return v


class OrchestratorResult(BaseModel):
    """Aggregated outcome of one orchestration run."""

    content: str = Field(..., description="Final assistant content")
    model: str = Field(..., description="Model used for generation")
    usage: LLMUsage = Field(default_factory=LLMUsage, description="Summed across all completions")
    iterations: int = Field(..., ge=0, description="Completion round-trips performed")
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    stopped_reason: StoppedReason = StoppedReason.COMPLETED
    message_id: Optional[str] = Field(
        default=None,
        description="Id of the persisted assistant message, when persistence succeeded"
    )

    @property
    def failed_tool_calls(self) -> List[ToolCallRecord]:
        return [tc for tc in self.tool_calls if tc.status == ToolCallStatus.FAILURE]


class PersistedToolCall(BaseModel):
    """Tool-call summary stored in assistant message metadata."""

    tool_name: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    status: ToolCallStatus


class AIResponse(BaseModel):
    """Assistant response handed to the chat collaborator for persistence."""

    content: str
    model: str
    token_count: int = Field(default=0, ge=0)
    tool_calls: List[PersistedToolCall] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: OrchestratorResult) -> "AIResponse":
        return cls(
            content=result.content,
            model=result.model,
            token_count=result.usage.total_tokens,
            tool_calls=[
                PersistedToolCall(
                    tool_name=tc.tool_name,
                    input=tc.input,
                    output=tc.output,
                    status=tc.status,
                )
                for tc in result.tool_calls
            ],
        )


# ============================================================================
# Stream events
# ============================================================================


class BaseStreamEvent(BaseModel):
    timestamp: float = Field(default_factory=time.time)


class MessageStartEvent(BaseStreamEvent):
    type: Literal["message.start"] = "message.start"
    message_id: str


class MessageDeltaEvent(BaseStreamEvent):
    type: Literal["message.delta"] = "message.delta"
    content: str


class MessageCompleteEvent(BaseStreamEvent):
    type: Literal["message.complete"] = "message.complete"
    message_id: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stopped_reason: StoppedReason = StoppedReason.COMPLETED


class ToolStartEvent(BaseStreamEvent):
    type: Literal["tool.start"] = "tool.start"
    tool_call_id: str
    tool_name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolCompleteEvent(BaseStreamEvent):
    type: Literal["tool.complete"] = "tool.complete"
    tool_call_id: str
    tool_name: str
    output: Optional[Dict[str, Any]] = None
    status: ToolCallStatus
    duration_ms: float = 0.0


class ErrorEvent(BaseStreamEvent):
    type: Literal["error"] = "error"
    code: str
    message: str


class DoneEvent(BaseStreamEvent):
    type: Literal["done"] = "done"


StreamEvent = Annotated[
    Union[
        MessageStartEvent,
        MessageDeltaEvent,
        MessageCompleteEvent,
        ToolStartEvent,
        ToolCompleteEvent,
        ErrorEvent,
        DoneEvent,
    ],
    Field(discriminator="type"),
]
