"""
Tool definition schema as listed by the tool collaborator.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import ToolRouteType


class ToolDefinition(BaseModel):
    """
    Schema for a tool available to the model.
    Translated 1:1 into the completion backend's function-calling format.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "calculator",
                "description": "Evaluate mathematical expressions",
                "type": "local",
                "input_schema": {
                    "type": "object",
                    "properties": {"expression": {"type": "string"}},
                    "required": ["expression"],
                },
            }
        },
    )

    name: str = Field(..., description="Unique tool identifier")
    description: str = Field(..., description="Clear description of tool purpose and usage")
    type: ToolRouteType = ToolRouteType.LOCAL
    config: dict[str, Any] = Field(default_factory=dict)
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema of the tool's arguments",
    )
    output_schema: dict[str, Any] | None = None
    requires_permission: str | None = None
