"""
Unit tests for ops_mcp/transport/stdio.py
"""

from __future__ import annotations

import asyncio

import pytest

from ops_mcp.errors import TransportError
from ops_mcp.registry import ToolRegistry
from ops_mcp.server import create_mcp_server
from ops_mcp.transport.base import TransportState
from ops_mcp.transport.stdio import StdioTransport


@pytest.fixture
def transport() -> StdioTransport:
    return StdioTransport(create_mcp_server(ToolRegistry()))


async def test_stop_before_start(transport):
    await transport.stop()
    await transport.stop()
    assert transport.state is TransportState.STOPPED
    assert not transport.is_running


async def test_start_and_stop(monkeypatch, transport):
    release = asyncio.Event()

    async def fake_serve():
        await release.wait()

    monkeypatch.setattr(transport, "_serve", fake_serve)
    task = asyncio.create_task(transport.start())
    await asyncio.sleep(0)
    assert transport.is_running

    await transport.stop(timeout=1)
    await asyncio.wait_for(task, timeout=1)
    assert transport.state is TransportState.STOPPED


async def test_clean_exit_when_input_closes(monkeypatch, transport):
    async def fake_serve():
        return None

    monkeypatch.setattr(transport, "_serve", fake_serve)
    await transport.start()
    assert transport.state is TransportState.STOPPED


async def test_serve_failure_is_transport_error(monkeypatch, transport):
    async def fake_serve():
        raise OSError("stdin closed unexpectedly")

    monkeypatch.setattr(transport, "_serve", fake_serve)
    with pytest.raises(TransportError, match="stdio transport failed: stdin closed unexpectedly"):
        await transport.start()
    assert transport.state is TransportState.STOPPED


async def test_cannot_restart(monkeypatch, transport):
    async def fake_serve():
        return None

    monkeypatch.setattr(transport, "_serve", fake_serve)
    await transport.start()
    with pytest.raises(TransportError, match="cannot start from state stopped"):
        await transport.start()
