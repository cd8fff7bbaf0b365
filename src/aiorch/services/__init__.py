"""
Collaborator interfaces and the in-memory implementation.
"""

from .in_memory import InMemoryServices
from .protocols import (
    ActivePrompt,
    AIPreferences,
    ChatRef,
    ChatService,
    KnowledgeSearch,
    KnowledgeService,
    MemorySearch,
    MemoryService,
    MessageMetadata,
    MessagePage,
    MessageQuery,
    MessageRef,
    NewMessage,
    PromptService,
    ToolList,
    ToolService,
    UserService,
)

__all__ = [
    "InMemoryServices",
    "UserService",
    "ChatService",
    "MemoryService",
    "KnowledgeService",
    "PromptService",
    "ToolService",
    "AIPreferences",
    "ChatRef",
    "MessageQuery",
    "MessagePage",
    "MessageMetadata",
    "NewMessage",
    "MessageRef",
    "MemorySearch",
    "KnowledgeSearch",
    "ActivePrompt",
    "ToolList",
]
