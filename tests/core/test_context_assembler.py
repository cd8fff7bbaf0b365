"""
Tests for the Context Assembler.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from aiorch.core.context_assembler import ContextAssembler, message_limit_for_budget
from aiorch.core.config import Settings
from aiorch.core.prompt_builder import CORE_INSTRUCTIONS
from aiorch.models.actor import AI_ACTOR, SYSTEM_ACTOR, ActorContext
from aiorch.models.context import KnowledgeFragment, MemoryFragment
from aiorch.models.enums import ActorType, ErrorCode, MessageRole, ToolCallStatus
from aiorch.models.result import Result
from aiorch.models.schemas import AIResponse, PersistedToolCall
from aiorch.services.protocols import AIPreferences, MessageRef


@pytest.fixture
def actor():
    return AI_ACTOR.with_request_id("orch-test")


@pytest.fixture
def seeded(services):
    services.active_prompt = "You are a patient math tutor."
    services.preferences["user-1"] = AIPreferences(
        response_length="short", formality="casual", custom_instructions="Use metric units"
    )
    services.add_memory("user-1", MemoryFragment(content="Prefers worked examples in math", importance=8))
    services.knowledge.append(KnowledgeFragment(title="Addition", content="Adding numbers in math"))
    services.append_user_message("chat-1", "Hello")
    return services


@pytest.fixture
def assembler(seeded):
    return ContextAssembler.from_services(seeded)


class TestBuildContext:
    @pytest.mark.asyncio
    async def test_assembles_all_sources(self, assembler, actor):
        result = await assembler.build_context(actor, "chat-1", "math question", user_id="user-1")

        assert result.success is True
        assert result.warnings == []
        context = result.data
        assert context.core_instructions == CORE_INSTRUCTIONS
        assert context.system_prompt == "You are a patient math tutor."
        assert context.preferences.response_length == "short"
        assert context.preferences.custom_instructions == "Use metric units"
        assert [m.content for m in context.memories] == ["Prefers worked examples in math"]
        assert [k.title for k in context.knowledge] == ["Addition"]
        assert [m.content for m in context.messages] == ["Hello"]
        assert [t.name for t in context.tools] == ["calculator"]
        assert context.user_id == "user-1"
        assert context.chat_id == "chat-1"

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self, seeded, actor, monkeypatch):
        fetches = [
            "get_chat",
            "get_messages",
            "get_active_prompt",
            "search_knowledge",
            "list_available_tools",
            "get_ai_preferences",
            "search_memories",
        ]
        in_flight = 0
        peak = 0

        def track(method):
            async def wrapper(*args, **kwargs):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return await method(*args, **kwargs)

            return wrapper

        for name in fetches:
            monkeypatch.setattr(seeded, name, track(getattr(seeded, name)))

        result = await ContextAssembler.from_services(seeded).build_context(
            actor, "chat-1", "math question", user_id="user-1"
        )

        assert result.success is True
        assert peak == len(fetches)

    @pytest.mark.asyncio
    async def test_without_user_id_keys_by_chat_owner(self, assembler, actor):
        result = await assembler.build_context(actor, "chat-1", "math question")

        assert result.data.user_id == "user-1"
        assert result.data.preferences.formality == "casual"
        assert len(result.data.memories) == 1

    @pytest.mark.asyncio
    async def test_missing_chat_is_hard_failure(self, assembler, actor):
        result = await assembler.build_context(actor, "chat-404", "hi", user_id="user-1")

        assert result.success is False
        assert result.code == ErrorCode.NOT_FOUND.value
        assert result.error.message == "Chat 'chat-404' not found"

    @pytest.mark.asyncio
    async def test_chat_error_returned_verbatim(self, seeded, actor):
        seeded.get_chat = AsyncMock(
            return_value=Result.err("CHAT_ARCHIVED", "Chat is archived", {"archived_at": "2024-01-01"})
        )
        assembler = ContextAssembler.from_services(seeded)

        result = await assembler.build_context(actor, "chat-1", "hi")

        assert result.code == "CHAT_ARCHIVED"
        assert result.error.details == {"archived_at": "2024-01-01"}

    @pytest.mark.asyncio
    async def test_user_actor_cannot_read_foreign_chat(self, assembler):
        intruder = ActorContext(type=ActorType.USER, request_id="r", user_id="user-2")

        result = await assembler.build_context(intruder, "chat-1", "hi")

        assert result.code == ErrorCode.PERMISSION_DENIED.value

    @pytest.mark.asyncio
    async def test_requesting_user_must_own_chat(self, assembler, actor):
        result = await assembler.build_context(actor, "chat-1", "hi", user_id="user-2")

        assert result.code == ErrorCode.PERMISSION_DENIED.value

    @pytest.mark.asyncio
    async def test_soft_failures_use_defaults_and_warn(self, services, actor):
        assembler = ContextAssembler.from_services(services)

        result = await assembler.build_context(actor, "chat-1", "hi", user_id="user-1")

        assert result.success is True
        assert result.data.system_prompt is None
        assert result.data.preferences.response_length == "balanced"
        assert result.data.preferences.formality == "neutral"
        assert result.data.preferences.custom_instructions is None
        assert sorted(result.warnings) == [
            "preferences unavailable: No AI preferences for user 'user-1'",
            "system_prompt unavailable: No active system prompt",
        ]

    @pytest.mark.asyncio
    async def test_soft_source_exception_is_contained(self, seeded, actor, mocker):
        mocker.patch.object(seeded, "search_memories", side_effect=RuntimeError("vector store down"))
        mocker.patch.object(seeded, "search_knowledge", side_effect=TimeoutError())
        assembler = ContextAssembler.from_services(seeded)

        result = await assembler.build_context(actor, "chat-1", "hi", user_id="user-1")

        assert result.success is True
        assert result.data.memories == ()
        assert result.data.knowledge == ()
        assert "memories unavailable: vector store down" in result.warnings
        assert "knowledge unavailable: TimeoutError" in result.warnings

    @pytest.mark.asyncio
    async def test_chat_fetch_exception_propagates(self, seeded, actor, mocker):
        mocker.patch.object(seeded, "get_chat", side_effect=ConnectionError("db down"))
        assembler = ContextAssembler.from_services(seeded)

        with pytest.raises(ConnectionError):
            await assembler.build_context(actor, "chat-1", "hi")

    @pytest.mark.asyncio
    async def test_message_window_follows_budget(self, seeded, actor):
        for i in range(30):
            seeded.append_user_message("chat-1", f"m{i}")
        assembler = ContextAssembler.from_services(seeded, Settings(conversation_token_budget=1500))

        result = await assembler.build_context(actor, "chat-1", "hi")

        assert assembler.message_limit == 15
        assert [m.content for m in result.data.messages] == [f"m{i}" for i in range(15, 30)]

    @pytest.mark.asyncio
    async def test_limits_are_forwarded(self, seeded, actor, mocker):
        spy = mocker.spy(seeded, "search_memories")
        assembler = ContextAssembler.from_services(seeded, Settings(memory_limit=3, knowledge_limit=2))

        await assembler.build_context(actor, "chat-1", "math", user_id="user-1")

        params = spy.call_args.args[1]
        assert params.limit == 3
        assert params.user_id == "user-1"
        assert params.query == "math"
        assert assembler.knowledge_limit == 2


def test_message_limit_for_budget():
    assert message_limit_for_budget(4000) == 40
    assert message_limit_for_budget(100) == 10


class TestPersistResponse:
    @pytest.mark.asyncio
    async def test_appends_assistant_message_with_ai_metadata(self, assembler, seeded, actor):
        response = AIResponse(
            content="The answer is 4.",
            model="test-model",
            token_count=300,
            tool_calls=[
                PersistedToolCall(
                    tool_name="calculator",
                    input={"expression": "2+2"},
                    output={"result": 4},
                    status=ToolCallStatus.SUCCESS,
                )
            ],
        )

        result = await assembler.persist_response(actor, "chat-1", response)

        assert result.success is True
        stored = seeded.chats["chat-1"].messages[-1]
        assert stored.id == result.data.id
        assert stored.entry.role == MessageRole.ASSISTANT
        assert stored.entry.content == "The answer is 4."
        metadata = stored.metadata.model_dump(mode="json", by_alias=True)
        assert metadata["actorType"] == "ai"
        assert metadata["model"] == "test-model"
        assert metadata["tokenCount"] == 300
        assert metadata["toolCalls"][0]["tool_name"] == "calculator"

    @pytest.mark.asyncio
    async def test_writes_as_system_actor(self, assembler, actor):
        chats = AsyncMock()
        chats.add_message.return_value = Result.ok(MessageRef(id="msg-1"))
        assembler.chats = chats

        await assembler.persist_response(actor, "chat-1", AIResponse(content="hi", model="m"))

        write_actor, chat_id, message = chats.add_message.await_args.args
        assert write_actor.type == SYSTEM_ACTOR.type
        assert write_actor.permissions == ("*",)
        assert write_actor.request_id == "orch-test"
        assert chat_id == "chat-1"
        assert message.metadata.tool_calls is None

    @pytest.mark.asyncio
    async def test_ai_actor_alone_cannot_write(self, seeded, actor):
        from aiorch.services.protocols import NewMessage

        result = await seeded.add_message(
            actor, "chat-1", NewMessage(role=MessageRole.ASSISTANT, content="x")
        )

        assert result.code == ErrorCode.PERMISSION_DENIED.value


@pytest.mark.asyncio
async def test_get_available_tools(assembler, actor):
    result = await assembler.get_available_tools(actor)

    assert [t.name for t in result.data] == ["calculator"]
