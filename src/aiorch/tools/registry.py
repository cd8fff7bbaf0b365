"""
Built-in local tools and default routing.

Local tools run in-process without external dependencies.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..exceptions import ToolError
from ..models.contracts import ToolExecutionContext, ToolRoute
from ..models.enums import ToolRouteType
from ..models.tool import ToolDefinition
from .calculator import CALCULATOR_TOOL, calculator_handler

ToolOutput = Dict[str, Any]
LocalToolHandler = Callable[
    [Dict[str, Any], ToolExecutionContext],
    Union[ToolOutput, Awaitable[ToolOutput]],
]


def current_time_handler(input: Dict[str, Any], context: ToolExecutionContext) -> ToolOutput:
    """Current time as an ISO timestamp, in UTC or a named IANA timezone."""
    tz_name = input.get("timezone") or "UTC"
    if not isinstance(tz_name, str):
        raise ToolError("VALIDATION_ERROR", "Timezone must be a string")
    try:
        tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ToolError("VALIDATION_ERROR", f"Unknown timezone: {tz_name}") from e

    now = datetime.now(tz)
    return {
        "timezone": tz_name,
        "iso": now.isoformat(),
        "unix": int(now.timestamp()),
    }


CURRENT_TIME_TOOL = ToolDefinition(
    name="get_current_time",
    description="Get the current date and time, in UTC or a given IANA timezone.",
    type=ToolRouteType.LOCAL,
    input_schema={
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": 'IANA timezone name (e.g., "Europe/Paris"). Defaults to UTC.',
            },
        },
    },
    output_schema={
        "type": "object",
        "properties": {
            "timezone": {"type": "string"},
            "iso": {"type": "string"},
            "unix": {"type": "integer"},
        },
    },
)


def create_local_handlers() -> Dict[str, LocalToolHandler]:
    """Create the local tool handler registry"""
    return {
        "calculator": calculator_handler,
        "get_current_time": current_time_handler,
    }


def create_default_routes() -> Dict[str, ToolRoute]:
    """Route registry for the built-in tools"""
    return {name: ToolRoute(type=ToolRouteType.LOCAL) for name in create_local_handlers()}


def get_local_tool_definitions() -> List[ToolDefinition]:
    return [CALCULATOR_TOOL, CURRENT_TIME_TOOL]
