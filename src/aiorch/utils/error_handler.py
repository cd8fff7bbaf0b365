"""Centralized error handling utilities"""
import time
from contextlib import contextmanager
from typing import Any

from ..exceptions import OrchestratorError
from ..models.enums import ErrorCode
from ..models.result import Result, ServiceError
from .logging import get_logger

logger = get_logger(__name__)


def exception_message(exc: BaseException) -> str:
    """Message of an exception, falling back to its class name when empty."""
    return str(exc) or type(exc).__name__


class ErrorHandler:
    """Conversions between raised exceptions and error values"""

    @staticmethod
    def to_service_error(exc: Exception) -> ServiceError:
        """
        Convert an exception into a structured ServiceError.

        ``OrchestratorError`` subclasses keep their error code and details;
        anything else becomes ``INTERNAL_ERROR``.
        """
        if isinstance(exc, OrchestratorError):
            return ServiceError(
                code=exc.error_code.value,
                message=exc.message,
                details=dict(exc.details),
            )
        return ServiceError(
            code=ErrorCode.INTERNAL_ERROR.value,
            message=exception_message(exc),
            details={"error_type": type(exc).__name__},
        )

    @staticmethod
    def result_from_exception(exc: Exception) -> Result[Any]:
        """Failed Result carrying the converted exception."""
        return Result.from_error(ErrorHandler.to_service_error(exc))

    @staticmethod
    @contextmanager
    def log_duration(operation_name: str, log_level: str = "info"):
        """
        Context manager to log operation duration.

        Example:
            with ErrorHandler.log_duration("prompt_build"):
                prompt = builder.build(prompt_input)
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            getattr(logger, log_level)(
                "operation_duration", operation=operation_name, duration_ms=round(duration_ms, 2)
            )
