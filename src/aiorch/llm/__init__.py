"""
LLM module - Unified interface to the completion backend via LiteLLM.
"""

from .client import LLMClient
from .stream import CompletionStream, StreamAccumulator

__all__ = [
    "LLMClient",
    "CompletionStream",
    "StreamAccumulator",
]
