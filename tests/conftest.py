"""
Shared fixtures for the test suite.
"""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from mcp.types import CallToolResult

from ops_mcp.cache import command_cache
from ops_mcp.commands import set_kubeconfig
from ops_mcp.executor import MockShellExecutor, use_shell_executor
from ops_mcp.formatters import result_text
from ops_mcp.httpclient import use_http_client
from ops_mcp.params import ToolDefinition
from ops_mcp.providers import register_providers
from ops_mcp.registry import ToolRegistry


# ---------------------------------------------------------------------------
# Subprocess mock factory
# ---------------------------------------------------------------------------

def make_proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    """Mimics the object returned by asyncio.create_subprocess_exec."""
    proc = MagicMock()
    proc.pid = 4242
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    proc.kill = MagicMock()
    return proc


@pytest.fixture
def mock_run(monkeypatch):
    """
    Patches asyncio.create_subprocess_exec with a fake that pops responses
    from a queue and records the argv of every spawn.

    Usage:
        spawned = mock_run((b"output", b"", 0))
        mock_run((b"out1", b"", 0), (b"out2", b"", 0))  # multiple calls
    """
    responses: list[tuple[bytes, bytes, int]] = []
    spawned: list[tuple[str, ...]] = []

    async def fake_exec(*args, **kwargs):
        assert responses, f"Unexpected subprocess call: {args}"
        spawned.append(args)
        stdout, stderr, rc = responses.pop(0)
        return make_proc(stdout, stderr, rc)

    monkeypatch.setattr("asyncio.create_subprocess_exec", fake_exec)

    def queue(*items: tuple[bytes, bytes, int]) -> list[tuple[str, ...]]:
        responses.extend(items)
        return spawned

    return queue


# ---------------------------------------------------------------------------
# Executor / HTTP client injection
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_process_state():
    """Command cache and kubeconfig are process-wide; reset them around every test."""
    command_cache.clear()
    set_kubeconfig(None)
    yield
    command_cache.clear()
    set_kubeconfig(None)


@pytest.fixture
def executor():
    """A MockShellExecutor bound for the duration of the test."""
    mock = MockShellExecutor()
    with use_shell_executor(mock):
        yield mock


@pytest.fixture
def mock_http():
    """
    Binds an httpx client whose requests are answered by the installed handler.
    The client is bound here, in the fixture, so binding and unbinding share a context.

    Usage:
        requests = mock_http(lambda req: httpx.Response(200, json={"ok": True}))
    """
    requests: list[httpx.Request] = []
    handlers: list[Callable[[httpx.Request], httpx.Response]] = []

    def record(request: httpx.Request) -> httpx.Response:
        assert handlers, f"Unexpected HTTP request: {request.method} {request.url}"
        requests.append(request)
        return handlers[-1](request)

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> list[httpx.Request]:
        handlers.append(handler)
        return requests

    with use_http_client(httpx.AsyncClient(transport=httpx.MockTransport(record))):
        yield install


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def registry() -> ToolRegistry:
    """A registry holding every provider's tools."""
    reg = ToolRegistry()
    register_providers(reg)
    return reg


async def call(definition: ToolDefinition, arguments: Any = None) -> tuple[CallToolResult, str]:
    """Invoke a tool handler; returns the result and its text."""
    result = await definition.handler(arguments if arguments is not None else {})
    return result, result_text(result)


# ---------------------------------------------------------------------------
# Sample backend responses
# ---------------------------------------------------------------------------

PROMETHEUS_VECTOR = {
    "status": "success",
    "data": {
        "resultType": "vector",
        "result": [
            {"metric": {"__name__": "up", "job": "prometheus"}, "value": [1700000000, "1"]},
        ],
    },
}

ARGOCD_APPLICATION = {
    "metadata": {"name": "guestbook", "namespace": "argocd"},
    "spec": {
        "project": "default",
        "source": {"repoURL": "https://github.com/argoproj/argocd-example-apps", "path": "guestbook"},
        "destination": {"server": "https://kubernetes.default.svc", "namespace": "default"},
    },
    "status": {"sync": {"status": "Synced"}, "health": {"status": "Healthy"}},
}

MANIFEST = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: demo
  namespace: default
data:
  key: value
"""
