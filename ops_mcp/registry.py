"""
Tool registry: name → (Tool, handler).

One registry is built per server instance and handed to the transports. Tool
names are unique; registering a name twice raises DuplicateToolError and
leaves the first registration in place.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

from mcp.types import CallToolResult, Tool

from ops_mcp.errors import DuplicateToolError, ToolNotFoundError
from ops_mcp.formatters import error_result
from ops_mcp.metrics import record_tool_call
from ops_mcp.params import ToolDefinition, ToolHandler

logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tools: dict[str, ToolDefinition] = {}
        self._providers: dict[str, str] = {}

    def register(self, definition: ToolDefinition, provider: str = "") -> None:
        with self._lock:
            if definition.name in self._tools:
                raise DuplicateToolError(f"tool already registered: {definition.name}")
            self._tools[definition.name] = definition
            self._providers[definition.name] = provider
        logger.debug("registered tool", extra={"tool": definition.name})

    def register_all(self, definitions: list[ToolDefinition], provider: str = "") -> None:
        """Register ``definitions`` atomically: on a duplicate nothing is added."""
        with self._lock:
            names = [d.name for d in definitions]
            clashes = [n for n in names if n in self._tools]
            repeated = {n for n in names if names.count(n) > 1}
            if clashes or repeated:
                raise DuplicateToolError(f"tool already registered: {(clashes or sorted(repeated))[0]}")
            for definition in definitions:
                self._tools[definition.name] = definition
                self._providers[definition.name] = provider

    def get(self, name: str) -> ToolDefinition | None:
        with self._lock:
            return self._tools.get(name)

    def provider_of(self, name: str) -> str:
        """The provider that registered ``name``; empty when registered directly."""
        with self._lock:
            return self._providers.get(name, "")

    def get_tool(self, name: str) -> Tool | None:
        definition = self.get(name)
        return definition.tool if definition else None

    def get_handler(self, name: str) -> ToolHandler | None:
        definition = self.get(name)
        return definition.handler if definition else None

    def list_tools(self) -> list[Tool]:
        with self._lock:
            return [d.tool for d in self._tools.values()]

    def count(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        return self.count()

    async def call(self, name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        """Dispatch to ``name``. Exceptions escaping the handler become error results."""
        definition = self.get(name)
        if definition is None:
            raise ToolNotFoundError(name)
        handler = definition.handler
        annotations = definition.tool.annotations
        if annotations is not None and annotations.readOnlyHint is False:
            logger.info("audit", extra={"tool": name, "arguments": _redact(arguments if isinstance(arguments, dict) else {})})
        provider = self.provider_of(name)
        start = time.monotonic()
        try:
            result = await handler(arguments or {})
        except Exception as exc:  # noqa: BLE001
            logger.exception("unexpected error in tool handler", extra={"tool": name})
            record_tool_call(name, provider, "exception", time.monotonic() - start)
            return error_result(f"Unexpected error: {exc}")
        record_tool_call(name, provider, "error" if result.isError else "success", time.monotonic() - start)
        return result


def _redact(arguments: dict[str, Any]) -> dict[str, Any]:
    """Arguments for the audit log, with manifests replaced by their size."""
    safe = {k: v for k, v in arguments.items() if k not in ("manifest", "application")}
    for key in ("manifest", "application"):
        if key in arguments:
            safe[f"{key}_size"] = f"{len(str(arguments[key]))} bytes"
    return safe
