"""
Workflow automation clients (n8n).

``HttpWorkflowClient`` triggers n8n webhooks; ``StubWorkflowClient`` answers
every invocation with a "not configured" failure.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from ..utils.logging import get_logger
from .mcp import RemoteToolResult

logger = get_logger(__name__)


@runtime_checkable
class WorkflowClient(Protocol):
    async def invoke(
        self, workflow_id: str, input: Dict[str, Any], timeout: float
    ) -> RemoteToolResult: ...

    def is_healthy(self) -> bool: ...


class StubWorkflowClient:
    """Placeholder client used when n8n is not configured."""

    async def invoke(
        self, workflow_id: str, input: Dict[str, Any], timeout: float
    ) -> RemoteToolResult:
        return RemoteToolResult(
            success=False,
            error_message=f"Workflow '{workflow_id}' not configured. n8n integration unavailable.",
        )

    def is_healthy(self) -> bool:
        return False


class HttpWorkflowClient:
    """
    Invokes n8n workflows through their webhook trigger.

    Each call POSTs the tool input as JSON to ``{base_url}/webhook/{workflow_id}``
    with the shared secret in ``X-Webhook-Secret``.
    """

    def __init__(
        self,
        base_url: str,
        webhook_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"X-Webhook-Secret": webhook_secret} if webhook_secret else {}
        self._client = httpx.AsyncClient(
            base_url=self.base_url, headers=headers, transport=transport
        )

    async def invoke(
        self, workflow_id: str, input: Dict[str, Any], timeout: float
    ) -> RemoteToolResult:
        response = await self._client.post(f"/webhook/{workflow_id}", json=input, timeout=timeout)

        if response.is_error:
            return RemoteToolResult(
                success=False,
                error_message=(
                    f"Workflow '{workflow_id}' failed with HTTP {response.status_code}"
                ),
            )

        body = response.json() if response.content else {}
        if isinstance(body, dict):
            execution_id = body.get("executionId")
            return RemoteToolResult(
                success=True,
                output=body,
                execution_id=str(execution_id) if execution_id is not None else None,
            )
        return RemoteToolResult(success=True, output={"result": body})

    def is_healthy(self) -> bool:
        return not self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpWorkflowClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_workflow_client(
    base_url: Optional[str] = None, webhook_secret: Optional[str] = None
) -> WorkflowClient:
    """HTTP client when a base URL is configured, stub otherwise."""
    if base_url:
        logger.info("workflow_client_configured", base_url=base_url)
        return HttpWorkflowClient(base_url, webhook_secret)
    return StubWorkflowClient()
