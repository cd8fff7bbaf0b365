"""
Context schemas for a single generation turn.

``AIContext`` is the immutable snapshot assembled by the context assembler and
consumed by the prompt builder. It is built once per turn and read-only
thereafter.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .enums import MessageRole
from .tool import ToolDefinition

DEFAULT_RESPONSE_LENGTH = "balanced"
DEFAULT_FORMALITY = "neutral"


class UserPreferences(BaseModel):
    """User AI preferences. Unset fields are omitted from the prompt."""

    model_config = ConfigDict(frozen=True)

    response_length: str | None = DEFAULT_RESPONSE_LENGTH
    formality: str | None = DEFAULT_FORMALITY
    custom_instructions: str | None = None


class MemoryFragment(BaseModel):
    """A retrieved memory, already similarity-ranked upstream."""

    model_config = ConfigDict(frozen=True)

    content: str
    category: str | None = None
    importance: int = Field(default=5, ge=1, le=10)
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)


class KnowledgeFragment(BaseModel):
    """A retrieved knowledge chunk, already similarity-ranked upstream."""

    model_config = ConfigDict(frozen=True)

    title: str
    content: str
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)


class ConversationEntry(BaseModel):
    """A prior message in the conversation."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AIContext(BaseModel):
    """
    Complete snapshot used for one generation turn.

    Layers:
    - core_instructions: immutable safety rules
    - system_prompt: governance-managed prompt, if one is active
    - preferences: user AI preferences
    - memories / knowledge: retrieved context
    - messages: prior conversation, oldest first
    - tools: tool schemas available in this chat
    """

    model_config = ConfigDict(frozen=True)

    version: Literal["v1"] = "v1"
    core_instructions: str
    system_prompt: str | None = None
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    memories: tuple[MemoryFragment, ...] = ()
    knowledge: tuple[KnowledgeFragment, ...] = ()
    messages: tuple[ConversationEntry, ...] = ()
    tools: tuple[ToolDefinition, ...] = ()
    user_id: str
    chat_id: str
