"""
Typed tool parameters and the generic handler pattern.

Every tool declares a pydantic model of its parameters. The model drives both
the advertised JSON input schema and argument decoding, so a tool module only
has to supply a parameter table and an argv builder:

    class ConnectParams(ToolParams):
        cluster_name: RequiredStr = Field(description="Remote cluster name")
        context: str = ""

    connect = cli_tool(
        "cilium_connect_to_remote_cluster",
        "Connect to a remote cluster for cluster mesh",
        ConnectParams,
        command="cilium",
        argv=lambda p: ["clustermesh", "connect", "--destination-cluster", p.cluster_name],
        error_prefix="Error connecting to remote cluster",
    )

Boolean parameters travel as the strings "true"/"false" by convention.
"""

from __future__ import annotations

import logging
import types
import typing
from dataclasses import dataclass
from typing import Annotated, Any, Awaitable, Callable, TypeVar, Union

from mcp.types import CallToolResult, Tool, ToolAnnotations
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, ValidationError
from pydantic_core import PydanticCustomError

from ops_mcp.commands import run_command
from ops_mcp.errors import ArgumentError, ToolError
from ops_mcp.formatters import error_result, text_result

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[CallToolResult]]
P = TypeVar("P", bound="ToolParams")

# ---------------------------------------------------------------------------
# Annotations shared by tool definitions
# ---------------------------------------------------------------------------

READ_ONLY = ToolAnnotations(readOnlyHint=True, openWorldHint=True)
MUTATING = ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True)
DESTRUCTIVE = ToolAnnotations(readOnlyHint=False, destructiveHint=True, openWorldHint=True)


# ---------------------------------------------------------------------------
# Parameter types
# ---------------------------------------------------------------------------

def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        # an empty string is an unset flag
        if lowered in ("true", "false", ""):
            return lowered == "true"
    raise ValueError("must be 'true' or 'false'")


def _not_blank(value: str) -> str:
    if not value.strip():
        raise PydanticCustomError("blank", "is required")
    return value


Flag = Annotated[bool, BeforeValidator(_parse_flag)]
# Blank values count as missing; the value itself is passed through untouched.
RequiredStr = Annotated[str, AfterValidator(_not_blank)]


class ToolParams(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class NoParams(ToolParams):
    pass


def _json_type(annotation: Any) -> dict[str, Any]:
    origin = typing.get_origin(annotation)
    if origin is Annotated:
        return _json_type(typing.get_args(annotation)[0])
    if origin in (Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        return _json_type(args[0]) if args else {"type": "string"}
    if annotation is bool:
        return {"type": "string", "enum": ["true", "false"]}
    if annotation is int:
        return {"type": "integer"}
    if annotation is float:
        return {"type": "number"}
    if origin is list:
        return {"type": "array", "items": {"type": "string"}}
    if origin is dict or annotation is dict:
        return {"type": "object"}
    return {"type": "string"}


def input_schema(model: type[ToolParams]) -> dict[str, Any]:
    """JSON schema advertised for ``model``."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, info in model.model_fields.items():
        key = info.alias or name
        prop = _json_type(info.annotation)
        if info.description:
            prop["description"] = info.description
        properties[key] = prop
        if info.is_required():
            required.append(key)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

_TYPE_NAMES = {
    "string_type": "a string",
    "int_type": "an integer",
    "int_parsing": "an integer",
    "int_from_float": "an integer",
    "float_type": "a number",
    "float_parsing": "a number",
    "dict_type": "an object",
    "list_type": "an array",
}


def _describe(error: dict[str, Any]) -> str:
    field = ".".join(str(p) for p in error["loc"]) or "arguments"
    kind = error["type"]
    if kind in ("missing", "blank"):
        return f"{field} parameter is required"
    if kind in _TYPE_NAMES:
        return f"{field} parameter must be {_TYPE_NAMES[kind]}"
    msg = str(error["msg"]).removeprefix("Value error, ")
    return f"{field} parameter {msg}" if kind == "value_error" else f"{field} parameter is invalid: {msg}"


def parse_arguments(model: type[P], arguments: Any) -> P:
    """Decode ``arguments`` into ``model`` or raise ArgumentError naming the first bad field."""
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ArgumentError("failed to parse arguments")
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        first = e.errors()[0]
        raise ArgumentError(_describe(first), field=str(first["loc"][0]) if first["loc"] else None) from e


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolDefinition:
    tool: Tool
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.tool.name


def define_tool(
    name: str,
    description: str,
    params: type[P] = NoParams,  # type: ignore[assignment]
    *,
    error_prefix: str | None = None,
    annotations: ToolAnnotations | None = None,
) -> Callable[[Callable[[P], Awaitable[str | CallToolResult]]], ToolDefinition]:
    """Wrap ``async fn(params)`` in decoding and error recovery.

    ``fn`` returns text or a ready CallToolResult. ArgumentError becomes an
    error result verbatim; any other ToolError is reported as
    ``"<error_prefix>: <error>"``.
    """

    def decorator(fn: Callable[[P], Awaitable[str | CallToolResult]]) -> ToolDefinition:
        async def handler(arguments: dict[str, Any]) -> CallToolResult:
            try:
                parsed = parse_arguments(params, arguments)
                outcome = await fn(parsed)
            except ArgumentError as e:
                return error_result(str(e))
            except ToolError as e:
                logger.debug("tool failed", extra={"tool": name, "error": str(e)})
                return error_result(f"{error_prefix}: {e}" if error_prefix else str(e))
            if isinstance(outcome, CallToolResult):
                return outcome
            return text_result(outcome)

        handler.__name__ = fn.__name__
        handler.__qualname__ = fn.__qualname__
        tool = Tool(
            name=name,
            description=description,
            inputSchema=input_schema(params),
            annotations=annotations,
        )
        return ToolDefinition(tool=tool, handler=handler)

    return decorator


def cli_tool(
    name: str,
    description: str,
    params: type[P],
    *,
    command: str,
    argv: Callable[[P], list[str]],
    error_prefix: str,
    timeout: float | None = None,
    annotations: ToolAnnotations | None = None,
) -> ToolDefinition:
    """A tool that runs one CLI invocation built from its parameters."""

    async def run(p: P) -> str:
        return await run_command(command, argv(p), timeout=timeout)

    run.__name__ = name
    run.__qualname__ = name
    return define_tool(name, description, params, error_prefix=error_prefix, annotations=annotations)(run)
