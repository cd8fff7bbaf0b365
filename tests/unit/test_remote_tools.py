"""
Unit tests for the MCP and workflow HTTP clients.
"""

import json

import httpx
import pytest
from aiorch.tools.mcp import HttpMCPClient, StubMCPClient, create_mcp_client
from aiorch.tools.workflow import HttpWorkflowClient, StubWorkflowClient, create_workflow_client


def mcp_transport(result=None, error=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if seen is not None:
            seen.append(payload)
        body = {"jsonrpc": "2.0", "id": payload["id"]}
        if error is not None:
            body["error"] = error
        else:
            body["result"] = result
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


class TestHttpMCPClient:
    @pytest.mark.asyncio
    async def test_tools_call_payload_and_structured_output(self):
        seen = []
        transport = mcp_transport(
            result={"content": [{"type": "text", "text": "3 hits"}], "structuredContent": {"hits": 3}},
            seen=seen,
        )
        async with HttpMCPClient({"search": "http://mcp.local/rpc"}, transport=transport) as client:
            result = await client.call_tool("search", "web_search", {"q": "python"}, 5.0)

        assert result.success is True
        assert result.output == {"hits": 3}
        assert seen[0]["jsonrpc"] == "2.0"
        assert seen[0]["method"] == "tools/call"
        assert seen[0]["params"] == {"name": "web_search", "arguments": {"q": "python"}}

    @pytest.mark.asyncio
    async def test_unstructured_content_is_wrapped(self):
        content = [{"type": "text", "text": "ok"}]
        async with HttpMCPClient({"s": "http://mcp.local"}, transport=mcp_transport({"content": content})) as client:
            result = await client.call_tool("s", "t", {}, 5.0)

        assert result.output == {"content": content}

    @pytest.mark.asyncio
    async def test_is_error_result_joins_text(self):
        transport = mcp_transport(
            {"isError": True, "content": [{"type": "text", "text": "quota"}, {"type": "text", "text": "exceeded"}]}
        )
        async with HttpMCPClient({"s": "http://mcp.local"}, transport=transport) as client:
            result = await client.call_tool("s", "t", {}, 5.0)

        assert result.success is False
        assert result.error_message == "quota exceeded"

    @pytest.mark.asyncio
    async def test_json_rpc_error(self):
        transport = mcp_transport(error={"code": -32601, "message": "Method not found"})
        async with HttpMCPClient({"s": "http://mcp.local"}, transport=transport) as client:
            result = await client.call_tool("s", "t", {}, 5.0)

        assert result.success is False
        assert result.error_message == "Method not found"

    @pytest.mark.asyncio
    async def test_unknown_server(self):
        async with HttpMCPClient({}, transport=mcp_transport({})) as client:
            result = await client.call_tool("nope", "t", {}, 5.0)

        assert result.error_message == "MCP server 'nope' not configured. Tool 't' unavailable."

    @pytest.mark.asyncio
    async def test_list_tools(self):
        transport = mcp_transport(
            {"tools": [{"name": "web_search", "description": "Search", "inputSchema": {"type": "object"}}]}
        )
        async with HttpMCPClient({"s": "http://mcp.local"}, transport=transport) as client:
            tools = await client.list_tools("s")

        assert [t.name for t in tools] == ["web_search"]
        assert tools[0].input_schema == {"type": "object"}

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502))
        async with HttpMCPClient({"s": "http://mcp.local"}, transport=transport) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.call_tool("s", "t", {}, 5.0)


class TestHttpWorkflowClient:
    @pytest.mark.asyncio
    async def test_posts_to_webhook_with_secret(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"executionId": 77, "status": "queued"})

        client = HttpWorkflowClient(
            "http://n8n.local/", webhook_secret="s3cret", transport=httpx.MockTransport(handler)
        )
        result = await client.invoke("wf-1", {"report": "weekly"}, 5.0)
        await client.aclose()

        assert result.success is True
        assert result.execution_id == "77"
        assert result.output == {"executionId": 77, "status": "queued"}
        assert str(seen[0].url) == "http://n8n.local/webhook/wf-1"
        assert seen[0].headers["X-Webhook-Secret"] == "s3cret"
        assert json.loads(seen[0].content) == {"report": "weekly"}
        assert client.is_healthy() is False

    @pytest.mark.asyncio
    async def test_non_object_body_is_wrapped(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[1, 2]))
        async with HttpWorkflowClient("http://n8n.local", transport=transport) as client:
            result = await client.invoke("wf-1", {}, 5.0)

        assert result.output == {"result": [1, 2]}

    @pytest.mark.asyncio
    async def test_error_status_is_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        async with HttpWorkflowClient("http://n8n.local", transport=transport) as client:
            result = await client.invoke("wf-1", {}, 5.0)

        assert result.success is False
        assert result.error_message == "Workflow 'wf-1' failed with HTTP 500"


class TestFactories:
    def test_stubs_without_configuration(self):
        assert isinstance(create_mcp_client({}), StubMCPClient)
        assert isinstance(create_workflow_client(None), StubWorkflowClient)

    def test_http_clients_when_configured(self):
        assert isinstance(create_mcp_client({"s": "http://mcp.local"}), HttpMCPClient)
        assert isinstance(create_workflow_client("http://n8n.local", "x"), HttpWorkflowClient)

    def test_stubs_are_unhealthy(self):
        assert StubMCPClient().is_healthy() is False
        assert StubWorkflowClient().is_healthy() is False
