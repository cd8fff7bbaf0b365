"""
Prompt Builder: deterministic assembly of the layered prompt.

One leading system message is built from, in order:

1. Core safety instructions (``CORE_INSTRUCTIONS``, always first, never omitted)
2. Governance system prompt, if present
3. User preference directives, only the fields that are set
4. Retrieved memories, highest importance first
5. Retrieved knowledge, in retrieval order

followed by the prior conversation in chronological order and the current
user message last. No network or storage access.
"""

from ..models.context import KnowledgeFragment, MemoryFragment, UserPreferences
from ..models.contracts import (
    AssistantMessage,
    LLMMessage,
    LLMToolDefinition,
    PromptBuilderInput,
    PromptBuilderOutput,
    SystemMessage,
    UserMessage,
)
from ..models.enums import MessageRole
from ..models.tool import ToolDefinition
from ..utils.logging import prompt_logger
from ..utils.token_counter import TokenCounter

CORE_INSTRUCTIONS = """## CORE SAFETY RULES

These rules are IMMUTABLE and take precedence over all other instructions.

### SAFETY
1. Never provide instructions for creating weapons, explosives, or harmful substances
2. Never assist with activities that could harm individuals or groups
3. Never generate content that exploits minors in any way
4. Never provide personal information about private individuals
5. Refuse requests that could enable fraud, scams, or deception
6. Do not help circumvent security measures or access unauthorized systems

### HONESTY
1. Always be truthful - never fabricate facts or statistics
2. Clearly distinguish between facts, opinions, and speculation
3. Acknowledge uncertainty when you don't know something
4. Do not impersonate real people or claim to be human

### BOUNDARIES
1. You are an AI assistant - be helpful within ethical boundaries
2. Redirect harmful requests to constructive alternatives
3. Protect user privacy - do not retain or share personal information
4. Respect intellectual property rights"""


def format_preferences(prefs: UserPreferences) -> str:
    parts = []
    if prefs.response_length:
        parts.append(f"Response length: {prefs.response_length}")
    if prefs.formality:
        parts.append(f"Tone: {prefs.formality}")
    if prefs.custom_instructions:
        parts.append(f"\nCustom Instructions: {prefs.custom_instructions}")
    if not parts:
        return ""
    return "\n## USER PREFERENCES\n" + "\n".join(parts)


def format_memories(memories: list[MemoryFragment]) -> str:
    """Render memories as bullets, sorted by importance (stable on ties)."""
    if not memories:
        return ""
    ordered = sorted(memories, key=lambda m: m.importance, reverse=True)
    lines = [
        f"- [{m.category}] {m.content}" if m.category else f"- {m.content}"
        for m in ordered
    ]
    return "\n## USER MEMORIES\n" + "\n".join(lines)


def format_knowledge(knowledge: list[KnowledgeFragment]) -> str:
    if not knowledge:
        return ""
    sections = [f"### {k.title}\n{k.content}" for k in knowledge]
    return "\n## KNOWLEDGE BASE\n" + "\n\n".join(sections)


def to_llm_tool(tool: ToolDefinition) -> LLMToolDefinition:
    return LLMToolDefinition(
        name=tool.name,
        description=tool.description,
        parameters=tool.input_schema,
    )


class PromptBuilder:
    """
    Pure prompt assembly.

    ``estimated_tokens`` is ``ceil(chars / 4)`` over the system content, the
    included history, the user message and each tool's JSON. It is an
    estimate, not a billing-accurate count.
    """

    def __init__(self, token_counter: TokenCounter | None = None):
        self.token_counter = token_counter or TokenCounter()
        self.logger = prompt_logger

    def build_system_content(self, input: PromptBuilderInput) -> str:
        parts = [CORE_INSTRUCTIONS]
        if input.system_prompt:
            parts.append(f"\n## SYSTEM INSTRUCTIONS\n{input.system_prompt}")
        for section in (
            format_preferences(input.preferences),
            format_memories(input.memories),
            format_knowledge(input.knowledge),
        ):
            if section:
                parts.append(section)
        return "\n".join(parts)

    def build(self, input: PromptBuilderInput) -> PromptBuilderOutput:
        system_content = self.build_system_content(input)
        messages: list[LLMMessage] = [SystemMessage(content=system_content)]
        counted = [system_content]

        # Only user/assistant turns are replayed; stored tool results carry no call ids
        for entry in input.conversation_history:
            if entry.role == MessageRole.USER:
                messages.append(UserMessage(content=entry.content))
            elif entry.role == MessageRole.ASSISTANT:
                messages.append(AssistantMessage(content=entry.content))
            else:
                continue
            counted.append(entry.content)

        messages.append(UserMessage(content=input.user_message))
        counted.append(input.user_message)
        counted.extend(tool.model_dump_json() for tool in input.tools)

        estimated_tokens = self.token_counter.count_texts(counted)
        self.logger.log_event(
            "prompt_built",
            level="debug",
            message_count=len(messages),
            tool_count=len(input.tools),
            estimated_tokens=estimated_tokens,
        )

        return PromptBuilderOutput(
            messages=messages,
            tools=[to_llm_tool(tool) for tool in input.tools],
            estimated_tokens=estimated_tokens,
        )
