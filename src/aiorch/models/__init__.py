"""
Pydantic models and schemas for the orchestration engine.
"""

from .actor import AI_ACTOR, SYSTEM_ACTOR, ActorContext
from .context import (
    AIContext,
    ConversationEntry,
    KnowledgeFragment,
    MemoryFragment,
    UserPreferences,
)
from .contracts import (
    AssistantMessage,
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMToolCall,
    LLMToolDefinition,
    LLMUsage,
    PromptBuilderInput,
    PromptBuilderOutput,
    SystemMessage,
    ToolCallRecord,
    ToolExecutionContext,
    ToolExecutionResult,
    ToolMessage,
    ToolRoute,
    UserMessage,
)
from .enums import (
    ActorType,
    ErrorCode,
    FinishReason,
    LogLevel,
    MessageRole,
    StoppedReason,
    ToolCallStatus,
    ToolRouteType,
)
from .result import Result, ServiceError
from .schemas import (
    AIResponse,
    OrchestratorInput,
    OrchestratorResult,
    StreamEvent,
)
from .tool import ToolDefinition

__all__ = [
    "ActorContext",
    "SYSTEM_ACTOR",
    "AI_ACTOR",
    "AIContext",
    "ConversationEntry",
    "KnowledgeFragment",
    "MemoryFragment",
    "UserPreferences",
    "AssistantMessage",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMStreamChunk",
    "LLMToolCall",
    "LLMToolDefinition",
    "LLMUsage",
    "PromptBuilderInput",
    "PromptBuilderOutput",
    "SystemMessage",
    "ToolCallRecord",
    "ToolExecutionContext",
    "ToolExecutionResult",
    "ToolMessage",
    "ToolRoute",
    "UserMessage",
    "ActorType",
    "ErrorCode",
    "FinishReason",
    "LogLevel",
    "MessageRole",
    "StoppedReason",
    "ToolCallStatus",
    "ToolRouteType",
    "Result",
    "ServiceError",
    "AIResponse",
    "OrchestratorInput",
    "OrchestratorResult",
    "StreamEvent",
    "ToolDefinition",
]
