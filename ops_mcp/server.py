"""
ops-mcp — MCP tool server for cluster operations

Exposes CLI- and REST-backed tools over MCP, grouped into providers:
  • k8s        — get, describe, logs, events, apply, scale, delete, exec
  • helm       — releases, upgrade, uninstall, repos, template
  • istio      — proxy status/config, install, analyze, waypoints, ztunnel
  • cilium     — status, install/upgrade, cluster mesh, BGP, cilium-dbg
  • argo       — Argo Rollouts via kubectl plugin, ArgoCD via its REST API
  • prometheus — instant/range queries, label names, targets
  • utils      — shell, current time, echo, sleep

Served over stdio (default) or HTTP (``--stdio=false`` or ``--http-port N``).
See ``ops_mcp.config`` for flags and environment variables.

Run with:
    python -m ops_mcp.server
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from typing import Any

from dotenv import load_dotenv
from mcp.server import Server
from mcp.types import CallToolResult, ListToolsResult

from ops_mcp.commands import set_kubeconfig
from ops_mcp.config import Config, load_config
from ops_mcp.errors import ConfigError, ToolNotFoundError, TransportError
from ops_mcp.formatters import error_result
from ops_mcp.logs import setup_logging
from ops_mcp.metrics import set_server_info
from ops_mcp.providers import Provider, check_binaries, register_providers
from ops_mcp.registry import ToolRegistry
from ops_mcp.transport.base import Transport
from ops_mcp.transport.http import HTTPTransport, HTTPTransportConfig
from ops_mcp.transport.stdio import StdioTransport

__version__ = "0.1.0"

SERVER_NAME = "ops-mcp"
STOP_TIMEOUT = 5.0  # seconds
ABANDON_TIMEOUT = 1.0  # seconds to wait for a cancelled serve task

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

def create_mcp_server(registry: ToolRegistry, name: str = SERVER_NAME) -> Server:
    """Build an MCP server whose tools are those of ``registry``."""
    server = Server(name, version=__version__)

    @server.list_tools()
    async def list_tools() -> ListToolsResult:
        return ListToolsResult(tools=registry.list_tools())

    # Arguments are validated by each tool's parameter model.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> CallToolResult:
        try:
            return await registry.call(name, arguments)
        except ToolNotFoundError:
            return error_result(f"Unknown tool: {name}")

    return server


def build_registry(config: Config) -> ToolRegistry:
    registry = ToolRegistry()
    providers = list(config.providers) or list(Provider)
    enabled = register_providers(registry, providers, read_only=config.read_only)
    check_binaries(enabled)
    mode = "read-only" if config.read_only else "full"
    logger.info(
        "tools registered",
        extra={"tools": registry.count(), "providers": ",".join(p.value for p in enabled), "mode": mode},
    )
    return registry


def build_transport(config: Config, registry: ToolRegistry) -> Transport:
    if config.stdio:
        return StdioTransport(create_mcp_server(registry))
    http = HTTPTransportConfig(
        port=config.http.port,
        read_timeout=config.http.read_timeout,
        write_timeout=config.http.write_timeout,
        shutdown_timeout=config.http.shutdown_timeout,
    )
    return HTTPTransport(registry, http, server_name=SERVER_NAME, server_version=__version__)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

async def _wait_for_signal() -> int:
    loop = asyncio.get_running_loop()
    received: asyncio.Future[int] = loop.create_future()

    def _on_signal(signum: int) -> None:
        if not received.done():
            received.set_result(signum)

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _on_signal, signum)
    try:
        return await received
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)


async def run(transport: Transport) -> int:
    """Serve until the transport exits or a shutdown signal arrives. Returns the exit code.

    Shutdown is bounded: a serve task that ignores cancellation (stdio blocked
    in a stdin read) is abandoned after ABANDON_TIMEOUT and ``main`` exits
    without joining it.
    """
    serve_task = asyncio.create_task(transport.start(), name="serve")
    signal_task = asyncio.create_task(_wait_for_signal(), name="signal-wait")
    done, _ = await asyncio.wait({serve_task, signal_task}, return_when=asyncio.FIRST_COMPLETED)

    if signal_task in done:
        logger.info("shutdown signal received", extra={"signal": signal.Signals(signal_task.result()).name})
        try:
            await asyncio.wait_for(transport.stop(STOP_TIMEOUT), STOP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("transport stop timed out", extra={"timeout": STOP_TIMEOUT})
        if not serve_task.done():
            serve_task.cancel()
        await asyncio.wait({serve_task}, timeout=ABANDON_TIMEOUT)
        if not serve_task.done():
            logger.warning("serve task did not exit, abandoning it", extra={"transport": transport.name})
    else:
        signal_task.cancel()
        await asyncio.wait({signal_task})

    exit_code = 0
    if serve_task.done() and not serve_task.cancelled() and serve_task.exception() is not None:
        exc = serve_task.exception()
        logger.error("transport failed", extra={"transport": transport.name, "error": str(exc)})
        exit_code = 1
    logger.info("Server shutdown complete")
    return exit_code


async def serve(config: Config) -> int:
    setup_logging(config.log_level)
    for warning in config.warnings:
        logger.warning(warning)
    set_kubeconfig(config.kubeconfig)

    registry = build_registry(config)
    transport = build_transport(config, registry)
    set_server_info(__version__, transport.name)
    logger.info(
        "ops-mcp server starting",
        extra={"version": __version__, "transport": transport.name},
    )
    return await run(transport)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _run_until_shutdown(config: Config) -> int:
    """Drive ``serve`` on a fresh event loop and return its exit code.

    Unlike ``asyncio.run`` this never joins tasks left running by an abandoned
    transport: if any remain, logs are flushed and the process exits at once.
    """
    loop = asyncio.new_event_loop()
    try:
        code = loop.run_until_complete(serve(config))
    except TransportError as e:
        logger.error("fatal transport error", extra={"error": str(e)})
        code = 1
    leftover = [t for t in asyncio.all_tasks(loop) if not t.done()]
    if leftover:
        logger.warning("exiting with tasks still running", extra={"tasks": len(leftover)})
        logging.shutdown()
        sys.stdout.flush()
        os._exit(code)
    loop.run_until_complete(loop.shutdown_asyncgens())
    loop.close()
    return code


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    try:
        config = load_config(argv)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)

    if config.show_version:
        print(f"{SERVER_NAME} {__version__}")
        return

    sys.exit(_run_until_shutdown(config))


if __name__ == "__main__":
    main()
