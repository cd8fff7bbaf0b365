"""Enhanced exception classes with rich context"""

from typing import Any
from datetime import datetime

from .models.enums import ErrorCode


class OrchestratorError(Exception):
    """Base exception with enhanced context and metadata"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
        recoverable: bool = False,
        user_message: str | None = None,
    ):
        """
        Initialize exception with context.

        Args:
            message: Technical error message for logs
            details: Additional context (dict for structured logging)
            retry_after: Seconds to wait before retrying (if applicable)
            recoverable: Whether error is recoverable with retry
            user_message: User-friendly error message
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.retry_after = retry_after
        self.recoverable = recoverable
        self.user_message = user_message or message
        self.timestamp = datetime.now()

    def __str__(self) -> str:
        parts = [self.message]

        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({details_str})")

        if self.retry_after:
            parts.append(f"[retry after {self.retry_after}s]")

        if self.recoverable:
            parts.append("[recoverable]")

        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging"""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
            "retry_after": self.retry_after,
            "recoverable": self.recoverable,
            "user_message": self.user_message,
            "timestamp": self.timestamp.isoformat(),
        }


class LLMError(OrchestratorError):
    """Completion backend errors (rate limit, timeout, malformed response)"""

    error_code = ErrorCode.LLM_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        # Rate limits (429) are usually recoverable by the caller
        recoverable = status_code == 429

        if status_code == 429:
            user_message = "API rate limit exceeded. Please try again in a moment."
        elif status_code == 401:
            user_message = "API authentication failed. Please check your API key."
        elif status_code == 503:
            user_message = "Service temporarily unavailable. Please try again."
        else:
            user_message = "An error occurred while calling the LLM API."

        super().__init__(
            message=message,
            details=details or {},
            retry_after=retry_after,
            recoverable=recoverable,
            user_message=user_message,
        )
        self.status_code = status_code


class ToolError(OrchestratorError):
    """Controlled failure raised by a tool handler.

    The tool executor turns this into a failure result; it never escapes
    ``ToolExecutor.execute``.
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        details = details or {}
        details["code"] = code

        super().__init__(
            message=message,
            details=details,
            recoverable=False,
            user_message=message,
        )
        self.code = code

    def __str__(self) -> str:
        return self.message


class OrchestrationCancelled(OrchestratorError):
    """Raised by the tool loop when a cancellation signal is observed between iterations"""

    error_code = ErrorCode.CANCELLED

    def __init__(self, iterations: int, tool_calls: int):
        super().__init__(
            message=f"Orchestration cancelled after {iterations} iteration(s)",
            details={"iterations": iterations, "tool_calls": tool_calls},
            user_message="The request was cancelled.",
        )
        self.iterations = iterations
        self.tool_calls = tool_calls


class ConfigurationError(OrchestratorError):
    """Configuration validation errors"""

    error_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value

        super().__init__(
            message=message,
            details=details,
            recoverable=False,  # Config errors require fix
            user_message=f"Configuration error: {message}",
        )
        self.field = field
        self.value = value


class ValidationError(OrchestratorError):
    """Raised when orchestration input is malformed."""

    error_code = ErrorCode.VALIDATION_ERROR
