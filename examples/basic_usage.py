"""
Basic usage example for aiorch.

Demonstrates one orchestration turn: context assembly over in-memory
collaborators, the bounded tool loop with the calculator tool, and
persistence of the assistant response.

Requires AIORCH_LLM_API_KEY (OpenRouter key) in the environment or .env.
"""

import asyncio

from aiorch import Orchestrator, get_settings
from aiorch.models.context import KnowledgeFragment, MemoryFragment
from aiorch.services import AIPreferences, InMemoryServices
from aiorch.tools.registry import get_local_tool_definitions


async def main():
    print("🚀 aiorch - AI Orchestration Engine Demo\n")

    # ========================================================================
    # Step 1: Seed the collaborators
    # ========================================================================
    print("📋 Step 1: Seed in-memory collaborators")
    print("-" * 50)

    services = InMemoryServices()
    chat_id = services.create_chat("user-1")
    services.tools = get_local_tool_definitions()
    services.active_prompt = "You are a helpful math tutor. Show your work briefly."
    services.preferences["user-1"] = AIPreferences(response_length="short", formality="casual")
    services.add_memory(
        "user-1", MemoryFragment(content="Prefers answers with units", category="style", importance=7)
    )
    services.knowledge.append(
        KnowledgeFragment(title="Compound interest", content="A = P * (1 + r) ^ n for yearly compounding")
    )

    print(f"✓ Chat: {chat_id}")
    print(f"  Tools: {', '.join(t.name for t in services.tools)}")

    # ========================================================================
    # Step 2: Run one turn
    # ========================================================================
    print("\n🔁 Step 2: Orchestrate")
    print("-" * 50)

    # The current turn is passed as user_message only; history holds earlier turns
    message = "How much is 1000 after 3 years at 5% compound interest?"

    async with Orchestrator.from_settings(services, get_settings()) as orchestrator:
        result = await orchestrator.run(
            {"user_message": message, "chat_id": chat_id, "user_id": "user-1"}
        )

    if not result.success:
        print(f"❌ {result.code}: {result.error.message}")
        return

    output = result.data
    for warning in result.warnings:
        print(f"⚠ {warning}")
    for call in output.tool_calls:
        print(f"✓ Tool {call.tool_name}({call.input}) -> {call.status.value}")

    # ========================================================================
    # Summary
    # ========================================================================
    print("\n" + "=" * 50)
    print("📊 SUMMARY")
    print("=" * 50)
    print(f"Model: {output.model}")
    print(f"Iterations: {output.iterations} ({output.stopped_reason.value})")
    print(f"Tokens: {output.usage.total_tokens}")
    print(f"Persisted as: {output.message_id}")
    print(f"\n{output.content}")


if __name__ == "__main__":
    asyncio.run(main())
