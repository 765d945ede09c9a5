"""
General utility tools.

Tools:
  shell                      — run a command line (split with shlex, no shell)
  datetime_get_current_time  — current local time, ISO 8601
  echo                       — return the message unchanged
  sleep                      — wait for a number of seconds (cancellable)
"""

from __future__ import annotations

import asyncio
import logging
import math
import shlex
import time
from datetime import datetime

from pydantic import Field

from ops_mcp.commands import CommandBuilder
from ops_mcp.errors import ArgumentError
from ops_mcp.params import MUTATING, READ_ONLY, NoParams, RequiredStr, ToolParams, define_tool

logger = logging.getLogger(__name__)


class ShellParams(ToolParams):
    command: RequiredStr = Field(description="The shell command to execute")


class EchoParams(ToolParams):
    message: str = Field(description="The message to echo")


class SleepParams(ToolParams):
    duration: float = Field(description="Duration to sleep in seconds (non-negative)")


@define_tool(
    "shell",
    "Execute a command line. The line is split into argv words; pipes, redirects and "
    "variable expansion are not interpreted.",
    ShellParams,
    annotations=MUTATING,
)
async def shell(p: ShellParams) -> str:
    try:
        parts = shlex.split(p.command)
    except ValueError as e:
        raise ArgumentError(f"invalid command: {e}", field="command") from e
    if not parts:
        raise ArgumentError("command parameter is required", field="command")
    return await CommandBuilder(parts[0]).with_args(*parts[1:]).execute()


@define_tool(
    "datetime_get_current_time",
    "Returns the current date and time in ISO 8601 format.",
    NoParams,
    annotations=READ_ONLY,
)
async def datetime_get_current_time(p: NoParams) -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


@define_tool("echo", "Echo back the provided message.", EchoParams, annotations=READ_ONLY)
async def echo(p: EchoParams) -> str:
    return p.message


@define_tool(
    "sleep",
    "Sleep for the specified duration in seconds. Cancelling the call stops the sleep.",
    SleepParams,
    annotations=READ_ONLY,
)
async def sleep(p: SleepParams) -> str:
    if not math.isfinite(p.duration):
        raise ArgumentError("duration must be a finite number", field="duration")
    if p.duration < 0:
        raise ArgumentError("duration must be non-negative", field="duration")
    start = time.monotonic()
    try:
        await asyncio.sleep(p.duration)
    except asyncio.CancelledError:
        logger.info(
            "sleep cancelled",
            extra={"elapsed_seconds": round(time.monotonic() - start, 2), "total_seconds": p.duration},
        )
        raise
    return f"slept for {p.duration:.2f} seconds"


UTILS_TOOLS = [shell, datetime_get_current_time, echo, sleep]
