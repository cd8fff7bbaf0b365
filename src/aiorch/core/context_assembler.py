"""
Context Assembler: fetches everything the prompt builder needs.

Chat resolution is a hard dependency: if the chat cannot be resolved (not
found, permission denied) the collaborator's error is returned verbatim.
Every other source is soft: on failure a default is substituted, a warning
is attached to the result and generation continues.
"""

import asyncio
import time
from typing import Any, Awaitable, Optional, TypeVar

from ..core.config import Settings
from ..core.prompt_builder import CORE_INSTRUCTIONS
from ..models.actor import SYSTEM_ACTOR, ActorContext
from ..models.context import AIContext, UserPreferences
from ..models.enums import ErrorCode, MessageRole
from ..models.result import Result
from ..models.schemas import AIResponse
from ..models.tool import ToolDefinition
from ..services.protocols import (
    ChatService,
    KnowledgeSearch,
    KnowledgeService,
    MemorySearch,
    MemoryService,
    MessageMetadata,
    MessageQuery,
    MessageRef,
    NewMessage,
    PromptService,
    ToolService,
    UserService,
)
from ..utils.error_handler import exception_message
from ..utils.logging import assembler_logger

T = TypeVar("T")

DEFAULT_MEMORY_LIMIT = 10
DEFAULT_KNOWLEDGE_LIMIT = 5
DEFAULT_CONVERSATION_TOKEN_BUDGET = 4000


def message_limit_for_budget(conversation_token_budget: int) -> int:
    """Prior messages to fetch, assuming about 100 tokens per message."""
    return max(10, conversation_token_budget // 100)


class ContextAssembler:
    """
    Builds the immutable ``AIContext`` for one generation turn.

    Example:
        assembler = ContextAssembler(users, chats, memories, knowledge, prompts, tools)
        result = await assembler.build_context(actor, "chat-1", "What is 2+2?")
    """

    def __init__(
        self,
        user_service: UserService,
        chat_service: ChatService,
        memory_service: MemoryService,
        knowledge_service: KnowledgeService,
        prompt_service: PromptService,
        tool_service: ToolService,
        memory_limit: int = DEFAULT_MEMORY_LIMIT,
        knowledge_limit: int = DEFAULT_KNOWLEDGE_LIMIT,
        conversation_token_budget: int = DEFAULT_CONVERSATION_TOKEN_BUDGET,
    ):
        self.users = user_service
        self.chats = chat_service
        self.memories = memory_service
        self.knowledge = knowledge_service
        self.prompts = prompt_service
        self.tools = tool_service
        self.memory_limit = memory_limit
        self.knowledge_limit = knowledge_limit
        self.message_limit = message_limit_for_budget(conversation_token_budget)
        self.logger = assembler_logger

    @classmethod
    def from_services(cls, services: Any, settings: Optional[Settings] = None) -> "ContextAssembler":
        """Build from one object implementing every collaborator (e.g. InMemoryServices)."""
        kwargs = {}
        if settings is not None:
            kwargs = {
                "memory_limit": settings.memory_limit,
                "knowledge_limit": settings.knowledge_limit,
                "conversation_token_budget": settings.conversation_token_budget,
            }
        return cls(services, services, services, services, services, services, **kwargs)

    async def _soft_fetch(self, source: str, call: Awaitable[Result[T]]) -> Result[T]:
        """Await a soft source; a raised exception becomes a failed Result."""
        try:
            return await call
        except Exception as e:
            self.logger.log_event(
                "context_source_exception",
                level="warning",
                source=source,
                error_type=type(e).__name__,
                error=exception_message(e),
            )
            return Result.err(ErrorCode.INTERNAL_ERROR, exception_message(e))

    def _soft_value(self, source: str, result: Result[Any], default: Any, warnings: list[str]) -> Any:
        if result.success:
            return result.data
        self.logger.log_event(
            "context_soft_failure",
            level="warning",
            source=source,
            code=result.code,
            error=result.error.message,
        )
        warnings.append(f"{source} unavailable: {result.error.message}")
        return default

    def _user_keyed(self, actor: ActorContext, user_id: str, user_message: str) -> list[Awaitable[Result[Any]]]:
        return [
            self._soft_fetch("preferences", self.users.get_ai_preferences(actor, user_id)),
            self._soft_fetch(
                "memories",
                self.memories.search_memories(
                    actor,
                    MemorySearch(user_id=user_id, query=user_message, limit=self.memory_limit),
                ),
            ),
        ]

    async def build_context(
        self,
        actor: ActorContext,
        chat_id: str,
        user_message: str,
        user_id: Optional[str] = None,
    ) -> Result[AIContext]:
        """
        Assemble the context for one turn.

        All fetches run concurrently. Preference and memory fetches are keyed
        by user: with ``user_id`` they start together with the others,
        without it they wait for the chat owner's id.

        Args:
            actor: Identity performing the reads
            chat_id: Target chat
            user_message: Current user message (retrieval query)
            user_id: Requesting user; must own the chat when given

        Returns:
            Result with the AIContext, or the chat collaborator's hard failure
        """
        start = time.perf_counter()
        self.logger.log_operation_start("build_context", {"chat_id": chat_id})

        independent = [
            self._soft_fetch("system_prompt", self.prompts.get_active_prompt(actor)),
            self._soft_fetch(
                "knowledge",
                self.knowledge.search_knowledge(
                    actor, KnowledgeSearch(query=user_message, limit=self.knowledge_limit)
                ),
            ),
            self._soft_fetch(
                "messages",
                self.chats.get_messages(actor, chat_id, MessageQuery(limit=self.message_limit)),
            ),
            self._soft_fetch("tools", self.tools.list_available_tools(actor)),
        ]
        keyed = self._user_keyed(actor, user_id, user_message) if user_id else []

        chat_result, prompt_r, knowledge_r, messages_r, tools_r, *keyed_results = (
            await asyncio.gather(self.chats.get_chat(actor, chat_id), *independent, *keyed)
        )

        if not chat_result.success:
            self.logger.log_event(
                "context_hard_failure",
                level="warning",
                chat_id=chat_id,
                code=chat_result.code,
                error=chat_result.error.message,
            )
            return Result.from_error(chat_result.error)

        owner_id = chat_result.data.user_id
        if user_id and user_id != owner_id:
            self.logger.log_event(
                "context_hard_failure",
                level="warning",
                chat_id=chat_id,
                code=ErrorCode.PERMISSION_DENIED.value,
            )
            return Result.err(
                ErrorCode.PERMISSION_DENIED,
                f"User '{user_id}' does not own chat '{chat_id}'",
            )
        if not keyed_results:
            keyed_results = await asyncio.gather(*self._user_keyed(actor, owner_id, user_message))
        prefs_r, memories_r = keyed_results

        warnings: list[str] = []
        prefs = self._soft_value("preferences", prefs_r, None, warnings)
        prompt = self._soft_value("system_prompt", prompt_r, None, warnings)
        memories = self._soft_value("memories", memories_r, [], warnings)
        knowledge = self._soft_value("knowledge", knowledge_r, [], warnings)
        page = self._soft_value("messages", messages_r, None, warnings)
        tool_list = self._soft_value("tools", tools_r, None, warnings)

        context = AIContext(
            core_instructions=CORE_INSTRUCTIONS,
            system_prompt=prompt.content if prompt else None,
            preferences=(
                UserPreferences(
                    response_length=prefs.response_length,
                    formality=prefs.formality,
                    custom_instructions=prefs.custom_instructions,
                )
                if prefs
                else UserPreferences()
            ),
            memories=tuple(memories),
            knowledge=tuple(knowledge),
            messages=tuple(page.items) if page else (),
            tools=tuple(tool_list.items) if tool_list else (),
            user_id=owner_id,
            chat_id=chat_id,
        )

        duration_ms = (time.perf_counter() - start) * 1000
        self.logger.log_operation_complete(
            "build_context",
            duration_ms=duration_ms,
            details={
                "memories": len(context.memories),
                "knowledge": len(context.knowledge),
                "messages": len(context.messages),
                "tools": len(context.tools),
                "soft_failures": len(warnings),
            },
        )

        result = Result.ok(context)
        for warning in warnings:
            result.add_warning(warning)
        return result

    async def get_available_tools(self, actor: ActorContext) -> Result[list[ToolDefinition]]:
        result = await self.tools.list_available_tools(actor)
        return result.map(lambda tool_list: list(tool_list.items))

    async def persist_response(
        self, actor: ActorContext, chat_id: str, response: AIResponse
    ) -> Result[MessageRef]:
        """
        Append the assistant message to the chat.

        The write is performed as ``SYSTEM_ACTOR`` (bound to the caller's
        request id); ``metadata.actorType = "ai"`` records the logical origin.
        """
        metadata = MessageMetadata(
            model=response.model,
            token_count=response.token_count,
            tool_calls=response.tool_calls or None,
        )
        return await self.chats.add_message(
            SYSTEM_ACTOR.with_request_id(actor.request_id),
            chat_id,
            NewMessage(role=MessageRole.ASSISTANT, content=response.content, metadata=metadata),
        )
