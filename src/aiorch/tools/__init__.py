"""
Tool execution layer: executor, built-in local tools and remote backends.
"""

from .calculator import CALCULATOR_TOOL, calculator_handler
from .executor import ToolExecutor
from .mcp import HttpMCPClient, MCPClient, RemoteToolResult, StubMCPClient, create_mcp_client
from .registry import (
    CURRENT_TIME_TOOL,
    create_default_routes,
    create_local_handlers,
    get_local_tool_definitions,
)
from .workflow import HttpWorkflowClient, StubWorkflowClient, WorkflowClient, create_workflow_client

__all__ = [
    "ToolExecutor",
    "CALCULATOR_TOOL",
    "CURRENT_TIME_TOOL",
    "calculator_handler",
    "create_local_handlers",
    "create_default_routes",
    "get_local_tool_definitions",
    "MCPClient",
    "HttpMCPClient",
    "StubMCPClient",
    "RemoteToolResult",
    "create_mcp_client",
    "WorkflowClient",
    "HttpWorkflowClient",
    "StubWorkflowClient",
    "create_workflow_client",
]
