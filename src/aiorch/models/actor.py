"""
Actor identities used for authorization decisions by collaborators.
"""

from pydantic import BaseModel, ConfigDict, Field

from .enums import ActorType


class ActorContext(BaseModel):
    """Who is performing an operation."""

    model_config = ConfigDict(frozen=True)

    type: ActorType
    request_id: str
    user_id: str | None = None
    session_id: str | None = None
    permissions: tuple[str, ...] = Field(default_factory=tuple)

    def with_request_id(self, request_id: str) -> "ActorContext":
        """Return a copy bound to a specific request id."""
        return self.model_copy(update={"request_id": request_id})


# System actor for background jobs and system-level side effects.
# Has all permissions.
SYSTEM_ACTOR = ActorContext(type=ActorType.SYSTEM, request_id="system", permissions=("*",))

# AI actor for orchestrator-initiated reads. Holds no permissions of its own.
AI_ACTOR = ActorContext(type=ActorType.AI, request_id="ai", permissions=())
