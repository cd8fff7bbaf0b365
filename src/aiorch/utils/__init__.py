"""
Utility modules for the orchestration engine.
"""

from .logging import ComponentLogger, get_logger, setup_logging
from .token_counter import TokenCounter, estimate_tokens
from .error_handler import ErrorHandler, exception_message

__all__ = [
    "ComponentLogger",
    "get_logger",
    "setup_logging",
    "TokenCounter",
    "estimate_tokens",
    "ErrorHandler",
    "exception_message",
]
