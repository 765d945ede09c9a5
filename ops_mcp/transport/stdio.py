"""MCP over stdin/stdout, driven by the ``mcp`` SDK."""

from __future__ import annotations

import asyncio
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server

from ops_mcp.errors import TransportError
from ops_mcp.transport.base import Transport, TransportState

logger = logging.getLogger(__name__)


class StdioTransport(Transport):
    name = "stdio"

    def __init__(self, server: Server) -> None:
        super().__init__()
        self.server = server
        self._task: asyncio.Task | None = None
        self._stopping = False

    async def _serve(self) -> None:
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    async def start(self) -> None:
        if self.state is not TransportState.CREATED:
            raise TransportError(f"stdio transport cannot start from state {self.state.value}")
        self._task = asyncio.create_task(self._serve())
        self._mark_started()
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._stopping:
                raise
        except Exception as exc:
            raise TransportError(f"stdio transport failed: {exc}") from exc
        finally:
            self._mark_stopped()

    async def stop(self, timeout: float | None = None) -> None:
        if self._task is None or self._task.done():
            self._mark_stopped()
            return
        self._stopping = True
        self._task.cancel()
        done, _ = await asyncio.wait({self._task}, timeout=timeout)
        if not done:
            logger.warning("stdio transport did not stop in time", extra={"timeout": timeout})
        self._mark_stopped()
