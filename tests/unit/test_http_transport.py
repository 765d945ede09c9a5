"""
Unit tests for ops_mcp/transport/http.py
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from ops_mcp.errors import TransportError
from ops_mcp.params import READ_ONLY, ToolParams, define_tool
from ops_mcp.registry import ToolRegistry
from ops_mcp.transport.base import TransportState
from ops_mcp.transport.http import HTTPTransport, HTTPTransportConfig, parse_envelope
from ops_mcp.tools import helm, utils


class SleepyParams(ToolParams):
    seconds: float = 1.0


@define_tool("slow", "Sleeps", SleepyParams, annotations=READ_ONLY)
async def slow(p: SleepyParams) -> str:
    await asyncio.sleep(p.seconds)
    return "done"


@pytest.fixture
def transport() -> HTTPTransport:
    reg = ToolRegistry()
    reg.register_all([utils.echo, helm.get_release, helm.list_releases, slow])
    return HTTPTransport(reg, HTTPTransportConfig(host="127.0.0.1", port=0, write_timeout=0.5), server_version="1.2.3")


@pytest.fixture
async def client(transport):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=transport.app), base_url="http://test") as c:
        yield c


def rpc(method: str, params: dict | None = None, id: int | str = 1) -> dict:
    body = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        body["params"] = params
    return body


# ---------------------------------------------------------------------------
# Envelope errors
# ---------------------------------------------------------------------------

async def test_malformed_json_is_400(client):
    resp = await client.post("/mcp/tools/call", content=b"{invalid json}")
    assert resp.status_code == 400
    body = resp.json()
    assert body["jsonrpc"] == "2.0"
    assert body["id"] is None
    assert body["error"]["code"] == -32700
    assert body["error"]["message"] == "Malformed JSON in request body"
    assert body["error"]["data"]["details"]["error_type"] == "malformed_json"


async def test_recovers_after_malformed_request(client):
    bad = await client.post("/mcp/tools/call", content=b"{invalid json}")
    assert bad.status_code == 400
    good = await client.post("/mcp/initialize", json=rpc("initialize"))
    assert good.status_code == 200
    result = good.json()["result"]
    assert result["serverInfo"] == {"name": "ops-mcp", "version": "1.2.3"}
    assert "tools" in result["capabilities"]


@pytest.mark.parametrize("body, code, field", [
    ({"id": 1, "method": "initialize"}, -32602, "jsonrpc"),
    ({"jsonrpc": "2.0", "method": "initialize"}, -32602, "id"),
    ({"jsonrpc": "2.0", "id": 1}, -32602, "method"),
])
async def test_missing_envelope_fields(client, body, code, field):
    resp = await client.post("/mcp", json=body)
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == code
    assert error["message"] == "Missing required field"
    assert error["data"]["details"]["field"] == field


@pytest.mark.parametrize("body, field, actual", [
    ({"jsonrpc": "1.0", "id": 1, "method": "initialize"}, "jsonrpc", "string"),
    ({"jsonrpc": "2.0", "id": True, "method": "initialize"}, "id", "boolean"),
    ({"jsonrpc": "2.0", "id": 1, "method": 7}, "method", "number"),
    ({"jsonrpc": "2.0", "id": 1, "method": "tools/list", "params": []}, "params", "array"),
    ([1, 2], "body", "array"),
])
async def test_invalid_field_types(client, body, field, actual):
    resp = await client.post("/mcp", json=body)
    assert resp.status_code == 400
    details = resp.json()["error"]["data"]["details"]
    assert details["field"] == field
    assert details["actual_type"] == actual


async def test_error_echoes_request_id(client):
    resp = await client.post("/mcp", json={"jsonrpc": "2.0", "id": "abc", "method": 5})
    assert resp.json()["id"] == "abc"


async def test_unknown_method_is_404(client):
    resp = await client.post("/mcp", json=rpc("resources/list"))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == -32601


async def test_method_must_match_endpoint(client):
    resp = await client.post("/mcp/tools/list", json=rpc("initialize"))
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == -32600


@pytest.mark.parametrize("path", ["/mcp", "/mcp/initialize", "/mcp/tools/list", "/mcp/tools/call"])
async def test_non_post_is_405(client, path):
    resp = await client.get(path)
    assert resp.status_code == 405
    assert resp.headers["allow"] == "POST"
    assert resp.json()["error"] == "method_not_allowed"


# ---------------------------------------------------------------------------
# Methods
# ---------------------------------------------------------------------------

async def test_tools_list(client):
    resp = await client.post("/mcp/tools/list", json=rpc("tools/list"))
    assert resp.status_code == 200
    tools = resp.json()["result"]["tools"]
    names = [t["name"] for t in tools]
    assert names == ["echo", "helm_get_release", "helm_list_releases", "slow"]
    echo = tools[0]
    assert echo["inputSchema"]["required"] == ["message"]
    assert echo["annotations"]["readOnlyHint"] is True


async def test_tools_call_success(client):
    resp = await client.post("/mcp/tools/call", json=rpc("tools/call", {"name": "echo", "arguments": {"message": "hi"}}))
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["isError"] is False
    assert result["content"] == [{"type": "text", "text": "hi"}]


async def test_tools_call_flat_arguments(client):
    resp = await client.post("/mcp", json=rpc("tools/call", {"name": "echo", "message": "flat"}))
    assert resp.json()["result"]["content"][0]["text"] == "flat"


async def test_tool_error_is_still_200(client):
    resp = await client.post("/mcp/tools/call", json=rpc("tools/call", {"name": "helm_get_release", "arguments": {}}))
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "name parameter is required"


async def test_unknown_tool_is_404(client):
    resp = await client.post("/mcp/tools/call", json=rpc("tools/call", {"name": "nope"}))
    assert resp.status_code == 404
    error = resp.json()["error"]
    assert error["code"] == -32002
    assert error["data"]["details"]["tool"] == "nope"


async def test_tools_call_requires_name(client):
    resp = await client.post("/mcp/tools/call", json=rpc("tools/call", {"arguments": {}}))
    assert resp.status_code == 400
    assert resp.json()["error"]["data"]["details"]["field"] == "params.name"


async def test_write_timeout_is_408(client):
    resp = await client.post("/mcp/tools/call", json=rpc("tools/call", {"name": "slow", "arguments": {"seconds": 5}}))
    assert resp.status_code == 408
    error = resp.json()["error"]
    assert error["code"] == -32001
    assert error["data"]["details"]["operation"] == "tools/call"


async def test_ping(client):
    resp = await client.post("/mcp", json=rpc("ping"))
    assert resp.json()["result"] == {}


async def test_health_counts_requests(client, transport):
    await client.post("/mcp", json=rpc("ping"))
    await client.post("/mcp", content=b"nope")
    resp = await client.get("/health")
    body = resp.json()
    assert resp.status_code == 200
    assert body["status"] == "ok"
    assert body["tools"] == 4
    assert body["total_requests"] == 3
    assert transport.total_requests == 3


async def test_metrics_endpoint(client):
    await client.post("/mcp/tools/call", json=rpc("tools/call", {"name": "echo", "arguments": {"message": "hi"}}))
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert 'ops_mcp_tool_calls_total{tool="echo",provider="",status="success"}' in resp.text
    assert 'ops_mcp_http_requests_total{method="POST",status="200"}' in resp.text


def test_parse_envelope_accepts_string_ids():
    assert parse_envelope(b'{"jsonrpc":"2.0","id":"x","method":"ping"}')["id"] == "x"


def test_keep_alive_default():
    assert HTTPTransportConfig().keep_alive == 60
    assert HTTPTransportConfig(idle_timeout=5).keep_alive == 5


@pytest.mark.parametrize("idle, shutdown, keep_alive, graceful", [
    (0.5, 0.5, 1, 1),
    (2.2, 10, 3, 10),
    (0, 0.1, 60, 1),
])
def test_uvicorn_timeouts_round_up(idle, shutdown, keep_alive, graceful):
    config = HTTPTransportConfig(idle_timeout=idle, shutdown_timeout=shutdown)
    uv = HTTPTransport(ToolRegistry(), config).uvicorn_config()
    assert uv.timeout_keep_alive == keep_alive
    assert uv.timeout_graceful_shutdown == graceful


# ---------------------------------------------------------------------------
# Lifecycle (real socket)
# ---------------------------------------------------------------------------

async def test_start_serve_and_stop(transport):
    serve = asyncio.create_task(transport.start())
    await transport.wait_started()
    assert transport.state is TransportState.STARTED
    assert transport.port > 0

    async with httpx.AsyncClient() as c:
        resp = await c.post(f"http://127.0.0.1:{transport.port}/mcp/initialize", json=rpc("initialize"))
    assert resp.status_code == 200

    await transport.stop(timeout=5)
    await asyncio.wait_for(serve, timeout=5)
    assert transport.state is TransportState.STOPPED


async def test_stop_is_idempotent(transport):
    await transport.stop()
    await transport.stop()
    assert transport.state is TransportState.STOPPED


async def test_cannot_start_twice(transport):
    serve = asyncio.create_task(transport.start())
    await transport.wait_started()
    with pytest.raises(TransportError, match="cannot start from state started"):
        await transport.start()
    await transport.stop(timeout=5)
    await serve


async def test_bind_failure_raises(transport):
    first = asyncio.create_task(transport.start())
    await transport.wait_started()
    other = HTTPTransport(ToolRegistry(), HTTPTransportConfig(host="127.0.0.1", port=transport.port))
    try:
        with pytest.raises(TransportError, match="failed to listen"):
            await other.start()
    finally:
        await transport.stop(timeout=5)
        await first
