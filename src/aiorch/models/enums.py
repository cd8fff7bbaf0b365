"""Enums for type-safe settings, message roles and orchestration outcomes.

This module provides enum types for every closed set of values that crosses
a component boundary, enabling IDE autocomplete, preventing typos, and
improving type safety.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes carried by failed ``Result`` values.

    Attributes:
        NOT_FOUND: Collaborator could not resolve the target (hard failure)
        PERMISSION_DENIED: Actor may not access the target (hard failure)
        VALIDATION_ERROR: Malformed orchestration input or configuration
        LLM_ERROR: Completion backend failure, aborts the tool loop
        TIMEOUT: Orchestration exceeded its total wall-clock budget
        CANCELLED: Caller cancelled the orchestration between iterations
        INTERNAL_ERROR: Unexpected infrastructure defect
    """
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    LLM_ERROR = "LLM_ERROR"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


class MessageRole(str, Enum):
    """Message roles for chat completion."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    def __str__(self) -> str:
        return self.value


class FinishReason(str, Enum):
    """Why the completion backend stopped generating in a given turn."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"

    def __str__(self) -> str:
        return self.value


class StoppedReason(str, Enum):
    """Why the tool loop terminated.

    Attributes:
        COMPLETED: The model produced a final answer
        MAX_ITERATIONS: Completion round-trip budget exhausted
        MAX_TOOL_CALLS: Cumulative tool invocation budget exhausted
    """
    COMPLETED = "completed"
    MAX_ITERATIONS = "max_iterations"
    MAX_TOOL_CALLS = "max_tool_calls"

    def __str__(self) -> str:
        return self.value


class ToolCallStatus(str, Enum):
    """Outcome of a single tool invocation."""
    SUCCESS = "success"
    FAILURE = "failure"

    def __str__(self) -> str:
        return self.value


class ToolRouteType(str, Enum):
    """Backend kinds a tool call can be routed to.

    Attributes:
        LOCAL: In-process handler
        MCP: Remote capability server
        N8N: Workflow automation engine
    """
    LOCAL = "local"
    MCP = "mcp"
    N8N = "n8n"

    def __str__(self) -> str:
        return self.value


class ActorType(str, Enum):
    """Kinds of identity an operation can execute on behalf of."""
    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"
    AI = "ai"
    ANONYMOUS = "anonymous"

    def __str__(self) -> str:
        return self.value


class LogLevel(str, Enum):
    """Standard logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def __str__(self) -> str:
        """Return the enum value as a string for serialization."""
        return self.value


# Export all enums
__all__ = [
    "ErrorCode",
    "MessageRole",
    "FinishReason",
    "StoppedReason",
    "ToolCallStatus",
    "ToolRouteType",
    "ActorType",
    "LogLevel",
]
