"""
Exception hierarchy.

Tool-level failures (ToolError and subclasses) are recovered by handlers into
``isError=True`` results. Registry, transport and config errors propagate to
the layer that owns them.
"""

from __future__ import annotations

from typing import Any, Sequence


# ---------------------------------------------------------------------------
# Tool-level errors
# ---------------------------------------------------------------------------

class ToolError(Exception):
    """Failure of a single tool invocation.

    Carries key/value context that callers attach as the error travels up
    through the layers::

        raise err.with_context("helm_operation", "list")
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context: dict[str, Any] = {}

    def with_context(self, key: str, value: Any) -> ToolError:
        self.context[key] = value
        return self

    def __str__(self) -> str:
        text = self.message
        if self.operation:
            text = f"{self.operation}: {text}"
        if self.context:
            pairs = ", ".join(f"{k}={_render(v)}" for k, v in self.context.items())
            text = f"{text} [{pairs}]"
        return text


class ArgumentError(ToolError):
    """Raised when tool arguments fail validation."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class CommandError(ToolError):
    """Raised when a subprocess cannot be spawned or exits non-zero."""

    def __init__(
        self,
        message: str,
        *,
        command: str,
        argv: Sequence[str] = (),
        exit_code: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.argv = list(argv)
        self.exit_code = exit_code
        self.output = output


class BackendError(ToolError):
    """Raised when a REST backend (ArgoCD, Prometheus) answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _render(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


# ---------------------------------------------------------------------------
# Registry / transport / startup errors
# ---------------------------------------------------------------------------

class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice."""


class ToolNotFoundError(LookupError):
    """Raised when dispatching to a tool name that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"tool not found: {name}")
        self.name = name


class TransportError(RuntimeError):
    """Raised when a transport fails to start or serve."""


class ConfigError(ValueError):
    """Raised when startup configuration is invalid."""
