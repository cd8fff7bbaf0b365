"""
Tool Executor: routes a named tool call to its backend.

Backends are in-process handlers (``local``), remote capability servers
(``mcp``) and the workflow automation engine (``n8n``). Every outcome,
including unknown tools, missing backends, handler exceptions and timeouts,
is returned as a ``ToolExecutionResult``; ``execute`` never raises for tool
failures.
"""

import asyncio
import inspect
import time
from typing import Any, Callable, Dict, Optional

from ..exceptions import ToolError
from ..models.contracts import ToolExecutionContext, ToolExecutionResult, ToolRoute
from ..models.enums import ToolRouteType
from ..utils.error_handler import exception_message
from ..utils.logging import executor_logger
from .mcp import MCPClient, RemoteToolResult
from .registry import LocalToolHandler, create_default_routes, create_local_handlers
from .workflow import WorkflowClient


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class ToolExecutor:
    """
    Routes tool calls by name and normalizes their outcome.

    Example:
        executor = ToolExecutor()

        @executor.register_local("echo")
        async def echo(input: dict, context: ToolExecutionContext) -> dict:
            return {"echo": input}

        result = await executor.execute("echo", {"text": "hi"}, context)
    """

    def __init__(
        self,
        local_handlers: Optional[Dict[str, LocalToolHandler]] = None,
        routes: Optional[Dict[str, ToolRoute]] = None,
        mcp_client: Optional[MCPClient] = None,
        workflow_client: Optional[WorkflowClient] = None,
        default_timeout: float = 30.0,
    ):
        """
        Args:
            local_handlers: Handlers for ``local`` routes, keyed by tool name
            routes: Route registry mapping tool name to backend
            mcp_client: Client for ``mcp`` routes (failure results if absent)
            workflow_client: Client for ``n8n`` routes (failure results if absent)
            default_timeout: Per-call timeout in seconds when the context sets none
        """
        self._handlers: Dict[str, LocalToolHandler] = dict(local_handlers or {})
        self._routes: Dict[str, ToolRoute] = dict(routes or {})
        self.mcp_client = mcp_client
        self.workflow_client = workflow_client
        self.default_timeout = default_timeout
        self.logger = executor_logger

    @classmethod
    def with_builtin_tools(cls, **kwargs: Any) -> "ToolExecutor":
        """Executor preloaded with the built-in local tools and their routes."""
        return cls(
            local_handlers=create_local_handlers(),
            routes=create_default_routes(),
            **kwargs,
        )

    def register_local(self, name: str) -> Callable:
        """
        Decorator to register a local handler and its ``local`` route.

        Handlers receive ``(input, context)`` and may be sync or async.
        """
        def decorator(func: LocalToolHandler) -> LocalToolHandler:
            self._handlers[name] = func
            self._routes[name] = ToolRoute(type=ToolRouteType.LOCAL)
            return func
        return decorator

    def register_route(self, name: str, route: ToolRoute) -> None:
        self._routes[name] = route

    def get_route(self, name: str) -> Optional[ToolRoute]:
        return self._routes.get(name)

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._routes)

    async def aclose(self) -> None:
        """Close remote backend clients that hold connections."""
        for client in (self.mcp_client, self.workflow_client):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()

    async def __aenter__(self) -> "ToolExecutor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def execute(
        self,
        tool_name: str,
        input: Dict[str, Any],
        context: ToolExecutionContext,
    ) -> ToolExecutionResult:
        """
        Execute a tool call.

        Args:
            tool_name: Name the model asked for
            input: Parsed tool arguments
            context: Caller identity, request id and optional timeout override

        Returns:
            ToolExecutionResult (success or failure, never raised)
        """
        start = time.perf_counter()
        route = self._routes.get(tool_name)

        if route is None:
            return self._failure(tool_name, f"Unknown tool: {tool_name}", start)

        timeout = context.timeout or self.default_timeout

        try:
            if route.type == ToolRouteType.LOCAL:
                handler = self._handlers.get(tool_name)
                if handler is None:
                    return self._failure(
                        tool_name, f"No handler registered for local tool: {tool_name}", start
                    )
                output = await asyncio.wait_for(
                    self._call_local(handler, input, context), timeout=timeout
                )
                return self._success(tool_name, output, start)

            if route.type == ToolRouteType.MCP:
                if self.mcp_client is None:
                    return self._failure(tool_name, "MCP client not configured", start)
                remote = await asyncio.wait_for(
                    self.mcp_client.call_tool(
                        route.server or "",
                        route.mcp_tool_name or tool_name,
                        input,
                        timeout,
                    ),
                    timeout=timeout,
                )
                return self._from_remote(tool_name, remote, "MCP tool execution failed", start)

            if route.type == ToolRouteType.N8N:
                if self.workflow_client is None:
                    return self._failure(tool_name, "Workflow client not configured", start)
                remote = await asyncio.wait_for(
                    self.workflow_client.invoke(route.workflow_id or "", input, timeout),
                    timeout=timeout,
                )
                return self._from_remote(tool_name, remote, "Workflow execution failed", start)

            return self._failure(tool_name, f"Unknown tool type: {route.type}", start)

        except asyncio.TimeoutError:
            return self._failure(tool_name, f"Tool '{tool_name}' timed out after {timeout:g}s", start)
        except ToolError as e:
            return self._failure(tool_name, e.message, start, code=e.code)
        except Exception as e:
            self.logger.log_event(
                "tool_handler_exception",
                level="warning",
                tool_name=tool_name,
                error_type=type(e).__name__,
                request_id=context.request_id,
            )
            return self._failure(tool_name, exception_message(e), start)

    async def _call_local(
        self, handler: LocalToolHandler, input: Dict[str, Any], context: ToolExecutionContext
    ) -> Dict[str, Any]:
        if inspect.iscoroutinefunction(handler):
            output = await handler(input, context)
        else:
            output = await asyncio.to_thread(handler, input, context)
            if inspect.isawaitable(output):
                output = await output
        if not isinstance(output, dict):
            output = {"result": output}
        return output

    def _from_remote(
        self, tool_name: str, remote: RemoteToolResult, fallback: str, start: float
    ) -> ToolExecutionResult:
        if not remote.success:
            return self._failure(
                tool_name, remote.error_message or fallback, start, output=remote.output
            )
        return self._success(tool_name, remote.output, start)

    def _success(self, tool_name: str, output: Dict[str, Any], start: float) -> ToolExecutionResult:
        duration_ms = _elapsed_ms(start)
        self.logger.log_event(
            "tool_executed", level="debug", tool_name=tool_name, duration_ms=round(duration_ms, 2)
        )
        return ToolExecutionResult(success=True, output=output, duration_ms=duration_ms)

    def _failure(
        self,
        tool_name: str,
        message: str,
        start: float,
        output: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ) -> ToolExecutionResult:
        duration_ms = _elapsed_ms(start)
        self.logger.log_event(
            "tool_execution_failed",
            level="warning",
            tool_name=tool_name,
            error=message,
            code=code,
            duration_ms=round(duration_ms, 2),
        )
        return ToolExecutionResult(
            success=False, output=output or {}, error_message=message, duration_ms=duration_ms
        )
