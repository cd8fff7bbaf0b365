"""
In-memory collaborators.

A single ``InMemoryServices`` object implements all six collaborator
interfaces over plain dictionaries. It backs the CLI and the integration
tests; it is not a persistence layer.
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models.actor import ActorContext
from ..models.context import ConversationEntry, KnowledgeFragment, MemoryFragment
from ..models.enums import ActorType, ErrorCode, MessageRole
from ..models.result import Result
from ..models.tool import ToolDefinition
from .protocols import (
    ActivePrompt,
    AIPreferences,
    ChatRef,
    KnowledgeSearch,
    MemorySearch,
    MessageMetadata,
    MessagePage,
    MessageQuery,
    MessageRef,
    NewMessage,
    ToolList,
)

WRITE_PERMISSION = "messages:write"


def _words(text: str) -> set[str]:
    return set(re.findall(r"\w+", text.lower()))


def _overlap(query: str, text: str) -> float:
    """Share of query words found in text (0-1)."""
    query_words = _words(query)
    if not query_words:
        return 0.0
    return len(query_words & _words(text)) / len(query_words)


@dataclass
class StoredMessage:
    id: str
    entry: ConversationEntry
    metadata: Optional[MessageMetadata] = None


@dataclass
class StoredChat:
    user_id: str
    messages: List[StoredMessage] = field(default_factory=list)


class InMemoryServices:
    """
    Dictionary-backed implementation of every collaborator.

    Access rules: a ``user`` actor may only read its own chats; the ``ai``,
    ``system`` and ``admin`` actors may read any chat. Appending a message
    requires the ``*`` or ``messages:write`` permission.
    """

    def __init__(self) -> None:
        self.chats: Dict[str, StoredChat] = {}
        self.preferences: Dict[str, AIPreferences] = {}
        self.memories: Dict[str, List[MemoryFragment]] = {}
        self.knowledge: List[KnowledgeFragment] = []
        self.active_prompt: Optional[str] = None
        self.tools: List[ToolDefinition] = []

    # -- seeding ----------------------------------------------------------

    def create_chat(self, user_id: str, chat_id: Optional[str] = None) -> str:
        chat_id = chat_id or f"chat-{uuid.uuid4().hex[:12]}"
        self.chats[chat_id] = StoredChat(user_id=user_id)
        return chat_id

    def add_memory(self, user_id: str, memory: MemoryFragment) -> None:
        self.memories.setdefault(user_id, []).append(memory)

    # -- UserService ------------------------------------------------------

    async def get_ai_preferences(self, actor: ActorContext, user_id: str) -> Result[AIPreferences]:
        prefs = self.preferences.get(user_id)
        return Result.from_optional(prefs, f"No AI preferences for user '{user_id}'")

    # -- ChatService ------------------------------------------------------

    def _resolve_chat(self, actor: ActorContext, chat_id: str) -> Result[StoredChat]:
        chat = self.chats.get(chat_id)
        if chat is None:
            return Result.err(ErrorCode.NOT_FOUND, f"Chat '{chat_id}' not found")
        if actor.type in (ActorType.USER, ActorType.ANONYMOUS) and actor.user_id != chat.user_id:
            return Result.err(
                ErrorCode.PERMISSION_DENIED, f"Actor may not access chat '{chat_id}'"
            )
        return Result.ok(chat)

    async def get_chat(self, actor: ActorContext, chat_id: str) -> Result[ChatRef]:
        return self._resolve_chat(actor, chat_id).map(lambda chat: ChatRef(user_id=chat.user_id))

    async def get_messages(
        self, actor: ActorContext, chat_id: str, params: MessageQuery
    ) -> Result[MessagePage]:
        def page(chat: StoredChat) -> MessagePage:
            entries = [m.entry for m in chat.messages]
            if params.limit is not None:
                entries = entries[-params.limit:]
            return MessagePage(items=entries)

        return self._resolve_chat(actor, chat_id).map(page)

    async def add_message(
        self, actor: ActorContext, chat_id: str, params: NewMessage
    ) -> Result[MessageRef]:
        if not {"*", WRITE_PERMISSION} & set(actor.permissions):
            return Result.err(ErrorCode.PERMISSION_DENIED, "Actor may not append messages")

        resolved = self._resolve_chat(actor, chat_id)
        if not resolved.success:
            return Result.from_error(resolved.error)

        message = StoredMessage(
            id=f"msg-{uuid.uuid4().hex[:12]}",
            entry=ConversationEntry(role=params.role, content=params.content),
            metadata=params.metadata,
        )
        resolved.data.messages.append(message)
        return Result.ok(MessageRef(id=message.id, created_at=message.entry.created_at))

    def append_user_message(self, chat_id: str, content: str) -> None:
        """Record a human message directly (seeding and CLI use)."""
        self.chats[chat_id].messages.append(
            StoredMessage(
                id=f"msg-{uuid.uuid4().hex[:12]}",
                entry=ConversationEntry(role=MessageRole.USER, content=content),
            )
        )

    # -- MemoryService ----------------------------------------------------

    async def search_memories(
        self, actor: ActorContext, params: MemorySearch
    ) -> Result[List[MemoryFragment]]:
        scored = [
            memory.model_copy(update={"similarity": _overlap(params.query, memory.content)})
            for memory in self.memories.get(params.user_id, [])
        ]
        scored.sort(key=lambda m: m.similarity, reverse=True)
        return Result.ok(scored[: params.limit] if params.limit else scored)

    # -- KnowledgeService -------------------------------------------------

    async def search_knowledge(
        self, actor: ActorContext, params: KnowledgeSearch
    ) -> Result[List[KnowledgeFragment]]:
        scored = [
            chunk.model_copy(
                update={"similarity": _overlap(params.query, f"{chunk.title} {chunk.content}")}
            )
            for chunk in self.knowledge
        ]
        scored = [chunk for chunk in scored if chunk.similarity > 0]
        scored.sort(key=lambda k: k.similarity, reverse=True)
        return Result.ok(scored[: params.limit] if params.limit else scored)

    # -- PromptService ----------------------------------------------------

    async def get_active_prompt(self, actor: ActorContext) -> Result[ActivePrompt]:
        if self.active_prompt is None:
            return Result.err(ErrorCode.NOT_FOUND, "No active system prompt")
        return Result.ok(ActivePrompt(content=self.active_prompt))

    # -- ToolService ------------------------------------------------------

    async def list_available_tools(self, actor: ActorContext) -> Result[ToolList]:
        return Result.ok(ToolList(items=list(self.tools)))
