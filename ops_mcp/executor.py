"""
Shell execution.

Uses asyncio.create_subprocess_exec, so no shell is involved: every argument
travels to the child as its own argv element and is never interpolated into
a shell string.

Handlers never pick an executor themselves. The active executor lives in a
context variable; tests install a MockShellExecutor with
``use_shell_executor`` and every CommandBuilder in that call chain picks it up.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
import os
import signal
import threading
import time
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Protocol, Sequence

from ops_mcp.errors import CommandError

logger = logging.getLogger(__name__)

MAX_OUTPUT_BYTES = 10 * 1024 * 1024  # 10 MB
REAP_TIMEOUT = 5.0  # seconds allowed for a killed process group to exit


class ShellExecutor(Protocol):
    async def exec(
        self,
        command: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> bytes:
        """Run ``command`` and return combined stdout and stderr."""
        ...

    async def exec_with_streams(
        self,
        command: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> tuple[bytes, bytes]:
        """Run ``command`` and return ``(stdout, stderr)`` separately."""
        ...


# ---------------------------------------------------------------------------
# Real executor
# ---------------------------------------------------------------------------

def _truncate(data: bytes) -> bytes:
    if len(data) > MAX_OUTPUT_BYTES:
        return data[:MAX_OUTPUT_BYTES] + b"\n[... output truncated at 10 MB ...]"
    return data


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the child and everything it spawned. The child leads its own session."""
    with suppress(ProcessLookupError):
        os.killpg(proc.pid, signal.SIGKILL)


class DefaultShellExecutor:
    """Spawns real processes, each in its own session.

    If the awaiting task is cancelled (including by a timeout) the child's
    whole process group is killed, so plugin processes such as
    kubectl-argo-rollouts die with it.
    """

    async def exec(
        self,
        command: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> bytes:
        output, _ = await self._run(command, args, env, combine=True)
        return output

    async def exec_with_streams(
        self,
        command: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> tuple[bytes, bytes]:
        return await self._run(command, args, env, combine=False)

    async def _run(
        self,
        command: str,
        args: Sequence[str],
        env: Mapping[str, str] | None,
        *,
        combine: bool,
    ) -> tuple[bytes, bytes]:
        argv = list(args)
        child_env = {**os.environ, **env} if env else None
        logger.debug("executing command", extra={"command": command, "argv": argv})
        start = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if combine else asyncio.subprocess.PIPE,
                env=child_env,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(
                "command execution failed",
                extra={"command": command, "argv": argv, "error": str(e)},
            )
            raise CommandError(
                f"failed to start {command}: {e}", command=command, argv=argv
            ) from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            _kill_process_group(proc)
            try:
                await asyncio.wait_for(proc.wait(), REAP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(
                    "killed process did not exit in time",
                    extra={"command": command, "pid": proc.pid, "timeout": REAP_TIMEOUT},
                )
            logger.warning(
                "command cancelled, process killed",
                extra={"command": command, "argv": argv, "pid": proc.pid},
            )
            raise

        stdout = _truncate(stdout)
        stderr = _truncate(stderr or b"")
        duration = time.monotonic() - start

        if proc.returncode != 0:
            captured = (stdout + stderr).decode(errors="replace").strip()
            logger.error(
                "command execution failed",
                extra={
                    "command": command,
                    "argv": argv,
                    "exit_code": proc.returncode,
                    "duration": round(duration, 3),
                    "output": captured,
                },
            )
            detail = f": {captured}" if captured else ""
            raise CommandError(
                f"{command} exited with code {proc.returncode}{detail}",
                command=command,
                argv=argv,
                exit_code=proc.returncode,
                output=captured,
            )

        logger.debug(
            "command execution successful",
            extra={"command": command, "argv": argv, "duration": round(duration, 3)},
        )
        return stdout, stderr


# ---------------------------------------------------------------------------
# Mock executor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommandCall:
    command: str
    args: list[str]
    env: dict[str, str] = field(default_factory=dict)
    index: int = 0


@dataclass
class _MockResponse:
    output: str
    error: Exception | str | None


class MockShellExecutor:
    """Deterministic executor for tests.

    Responses are keyed on (command, args). Exact matches win over prefix
    matches registered with ``add_partial_match``; among prefixes the longest
    one wins. An unmatched call raises ``CommandError``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._exact: dict[tuple[str, tuple[str, ...]], _MockResponse] = {}
        self._partial: list[tuple[str, tuple[str, ...], _MockResponse]] = []
        self._calls: list[CommandCall] = []

    def add_command(
        self,
        command: str,
        args: Sequence[str],
        output: str = "",
        error: Exception | str | None = None,
    ) -> None:
        with self._lock:
            self._exact[(command, tuple(args))] = _MockResponse(output, error)

    def add_partial_match(
        self,
        command: str,
        args_prefix: Sequence[str],
        output: str = "",
        error: Exception | str | None = None,
    ) -> None:
        with self._lock:
            self._partial.append(
                (command, tuple(args_prefix), _MockResponse(output, error))
            )

    @property
    def calls(self) -> list[CommandCall]:
        with self._lock:
            return list(self._calls)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)

    def reset(self) -> None:
        with self._lock:
            self._exact.clear()
            self._partial.clear()
            self._calls.clear()

    async def exec(
        self,
        command: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> bytes:
        response = self._record_and_match(command, args, env)
        if isinstance(response.error, Exception):
            raise response.error
        if response.error is not None:
            raise CommandError(
                response.error, command=command, argv=args, exit_code=1, output=response.error
            )
        return response.output.encode()

    async def exec_with_streams(
        self,
        command: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> tuple[bytes, bytes]:
        return await self.exec(command, args, env=env), b""

    def _record_and_match(
        self, command: str, args: Sequence[str], env: Mapping[str, str] | None
    ) -> _MockResponse:
        key = tuple(args)
        with self._lock:
            self._calls.append(CommandCall(command, list(args), dict(env or {}), len(self._calls)))
            response = self._exact.get((command, key))
            if response is None:
                best = -1
                for cmd, prefix, candidate in self._partial:
                    if cmd == command and key[: len(prefix)] == prefix and len(prefix) > best:
                        best, response = len(prefix), candidate
        if response is None:
            raise CommandError(
                f"no mock found for command: {' '.join([command, *args])}",
                command=command,
                argv=args,
            )
        return response


# ---------------------------------------------------------------------------
# Context-scoped injection
# ---------------------------------------------------------------------------

_default_executor = DefaultShellExecutor()
_current_executor: contextvars.ContextVar[ShellExecutor | None] = contextvars.ContextVar(
    "shell_executor", default=None
)


def get_shell_executor() -> ShellExecutor:
    """Return the executor bound to the current context, or the real one."""
    return _current_executor.get() or _default_executor


@contextmanager
def use_shell_executor(executor: ShellExecutor) -> Iterator[ShellExecutor]:
    """Bind ``executor`` for the duration of the ``with`` block."""
    token = _current_executor.set(executor)
    try:
        yield executor
    finally:
        _current_executor.reset(token)
