"""
Fluent command construction on top of the context-bound ShellExecutor.

    output = await (
        CommandBuilder("helm")
        .with_args("list", "-n", "kube-system")
        .with_kubeconfig(get_kubeconfig())
        .with_timeout(30)
        .execute()
    )
"""

from __future__ import annotations

import asyncio
import os

from ops_mcp.cache import command_cache
from ops_mcp.errors import CommandError
from ops_mcp.executor import get_shell_executor

# ---------------------------------------------------------------------------
# Process-wide kubeconfig
# ---------------------------------------------------------------------------

_kubeconfig: str | None = os.environ.get("KUBECONFIG") or None


def set_kubeconfig(path: str | None) -> None:
    global _kubeconfig
    _kubeconfig = path or None


def get_kubeconfig() -> str | None:
    return _kubeconfig


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class CommandBuilder:
    def __init__(self, command: str) -> None:
        self.command = command
        self.args: list[str] = []
        self.kubeconfig: str | None = None
        self.timeout: float | None = None
        self.cache_ttl: float | None = None

    def with_args(self, *args: str) -> CommandBuilder:
        self.args.extend(args)
        return self

    def with_kubeconfig(self, path: str | None) -> CommandBuilder:
        """Point the child at ``path`` through the KUBECONFIG environment variable."""
        self.kubeconfig = path or None
        return self

    def with_timeout(self, seconds: float | None) -> CommandBuilder:
        self.timeout = seconds
        return self

    def with_cache(self, ttl: float | None = None) -> CommandBuilder:
        """Serve repeated identical invocations from the shared command cache."""
        self.cache_ttl = command_cache.default_ttl if ttl is None else ttl
        return self

    @property
    def env(self) -> dict[str, str]:
        return {"KUBECONFIG": self.kubeconfig} if self.kubeconfig else {}

    def _cache_key(self) -> tuple[str, tuple[str, ...], str | None]:
        return (self.command, tuple(self.args), self.kubeconfig)

    async def execute(self) -> str:
        if self.cache_ttl is not None:
            cached = command_cache.get(self._cache_key())
            if cached is not None:
                return cached

        executor = get_shell_executor()
        run = executor.exec(self.command, self.args, env=self.env)
        if self.timeout:
            try:
                raw = await asyncio.wait_for(run, timeout=self.timeout)
            except asyncio.TimeoutError:
                raise CommandError(
                    f"{self.command} timed out after {self.timeout:g}s",
                    command=self.command,
                    argv=self.args,
                )
        else:
            raw = await run

        output = raw.decode(errors="replace").strip()
        if self.cache_ttl is not None:
            command_cache.set(self._cache_key(), output, ttl=self.cache_ttl)
        return output


async def run_command(
    command: str,
    args: list[str],
    *,
    timeout: float | None = None,
    cache_ttl: float | None = None,
) -> str:
    """Run ``command`` against the configured kubeconfig."""
    builder = CommandBuilder(command).with_args(*args).with_kubeconfig(get_kubeconfig()).with_timeout(timeout)
    if cache_ttl is not None:
        builder.with_cache(cache_ttl)
    return await builder.execute()
