"""
Collaborator interfaces consumed by the orchestration core.

Every operation is asynchronous and reports expected conditions (not found,
permission denied) through a failed ``Result`` rather than an exception.
Payloads have a fixed field set per operation.
"""

from datetime import datetime, timezone
from typing import List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models.actor import ActorContext
from ..models.context import (
    DEFAULT_FORMALITY,
    DEFAULT_RESPONSE_LENGTH,
    ConversationEntry,
    KnowledgeFragment,
    MemoryFragment,
)
from ..models.enums import ActorType, MessageRole
from ..models.result import Result
from ..models.schemas import PersistedToolCall
from ..models.tool import ToolDefinition

# ============================================================================
# Payloads
# ============================================================================


class AIPreferences(BaseModel):
    response_length: str = DEFAULT_RESPONSE_LENGTH
    formality: str = DEFAULT_FORMALITY
    custom_instructions: Optional[str] = None


class ChatRef(BaseModel):
    """Resolved chat; carries the owning user id."""

    user_id: str


class MessageQuery(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)


class MessagePage(BaseModel):
    """Prior messages, oldest first."""

    items: List[ConversationEntry] = Field(default_factory=list)


class MessageMetadata(BaseModel):
    """Metadata stored with an AI-authored message (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    actor_type: ActorType = ActorType.AI
    model: str
    token_count: int = 0
    tool_calls: Optional[List[PersistedToolCall]] = None


class NewMessage(BaseModel):
    role: MessageRole
    content: str
    metadata: Optional[MessageMetadata] = None


class MessageRef(BaseModel):
    id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MemorySearch(BaseModel):
    user_id: str
    query: str
    limit: Optional[int] = Field(default=None, ge=1)


class KnowledgeSearch(BaseModel):
    query: str
    limit: Optional[int] = Field(default=None, ge=1)


class ActivePrompt(BaseModel):
    content: str


class ToolList(BaseModel):
    items: List[ToolDefinition] = Field(default_factory=list)


# ============================================================================
# Collaborators
# ============================================================================


@runtime_checkable
class UserService(Protocol):
    async def get_ai_preferences(
        self, actor: ActorContext, user_id: str
    ) -> Result[AIPreferences]: ...


@runtime_checkable
class ChatService(Protocol):
    async def get_chat(self, actor: ActorContext, chat_id: str) -> Result[ChatRef]: ...

    async def get_messages(
        self, actor: ActorContext, chat_id: str, params: MessageQuery
    ) -> Result[MessagePage]: ...

    async def add_message(
        self, actor: ActorContext, chat_id: str, params: NewMessage
    ) -> Result[MessageRef]: ...


@runtime_checkable
class MemoryService(Protocol):
    async def search_memories(
        self, actor: ActorContext, params: MemorySearch
    ) -> Result[List[MemoryFragment]]: ...


@runtime_checkable
class KnowledgeService(Protocol):
    async def search_knowledge(
        self, actor: ActorContext, params: KnowledgeSearch
    ) -> Result[List[KnowledgeFragment]]: ...


@runtime_checkable
class PromptService(Protocol):
    async def get_active_prompt(self, actor: ActorContext) -> Result[ActivePrompt]: ...


@runtime_checkable
class ToolService(Protocol):
    async def list_available_tools(self, actor: ActorContext) -> Result[ToolList]: ...
