"""
MCP-style JSON-RPC over plain HTTP.

Endpoints:
  GET  /health            — status, uptime, request and tool counts
  GET  /metrics           — Prometheus exposition
  POST /mcp/initialize    — server capabilities
  POST /mcp/tools/list    — registered tools
  POST /mcp/tools/call    — invoke a tool
  POST /mcp               — any of the above, dispatched on ``method``

Envelope and routing problems are answered with an HTTP error status and a
JSON-RPC ``error`` body. A tool call that reaches its handler always answers
200, with the tool's own ``isError`` flag inside ``result``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import math
import socket
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import uvicorn
from mcp.types import LATEST_PROTOCOL_VERSION
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ops_mcp.errors import ToolNotFoundError, TransportError
from ops_mcp.metrics import record_http_request, render
from ops_mcp.registry import ToolRegistry
from ops_mcp.transport.base import Transport, TransportState

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 60.0  # seconds
_ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
REQUEST_TIMEOUT = -32001
TOOL_NOT_FOUND = -32002


@dataclass(frozen=True)
class HTTPTransportConfig:
    host: str = "0.0.0.0"
    port: int = 8080
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    idle_timeout: float = 0.0
    shutdown_timeout: float = 10.0

    @property
    def keep_alive(self) -> float:
        return self.idle_timeout or DEFAULT_IDLE_TIMEOUT


# ---------------------------------------------------------------------------
# JSON-RPC errors
# ---------------------------------------------------------------------------

class RPCError(Exception):
    """A request-level failure answered with ``status`` and a JSON-RPC error body."""

    def __init__(
        self,
        status: int,
        code: int,
        message: str,
        error_type: str,
        suggestion: str,
        **details: Any,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message
        self.details = {**details, "error_type": error_type, "suggestion": suggestion}

    def response(self, request_id: Any = None) -> JSONResponse:
        body = {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": self.code, "message": self.message, "data": {"details": self.details}},
        }
        return JSONResponse(body, status_code=self.status)


def malformed_json(reason: str) -> RPCError:
    return RPCError(400, PARSE_ERROR, "Malformed JSON in request body", "malformed_json",
                    "Ensure the request body is valid JSON and properly formatted", reason=reason)


def missing_field(field: str) -> RPCError:
    return RPCError(400, INVALID_PARAMS, "Missing required field", "missing_field",
                    f"Please provide the required field '{field}' in the request", field=field)


def invalid_field_type(field: str, expected: str, actual: Any) -> RPCError:
    return RPCError(400, INVALID_PARAMS, "Invalid field type", "invalid_field_type",
                    f"Please provide a {expected} value for field '{field}'",
                    field=field, expected_type=expected, actual_type=_json_type_name(actual))


def protocol_error(reason: str) -> RPCError:
    return RPCError(400, INVALID_REQUEST, "Protocol error", "protocol_error",
                    "Please ensure the request follows the MCP JSONRPC 2.0 specification", reason=reason)


def method_not_found(method: str) -> RPCError:
    return RPCError(404, METHOD_NOT_FOUND, f"Method not found: {method}", "method_not_found",
                    "Use one of: initialize, tools/list, tools/call", method=method)


def tool_not_found(tool: str) -> RPCError:
    return RPCError(404, TOOL_NOT_FOUND, "Tool not found", "tool_not_found",
                    "Please verify the tool name exists and is correctly spelled", tool=tool)


def request_timeout(operation: str, seconds: float) -> RPCError:
    return RPCError(408, REQUEST_TIMEOUT, "Request timeout", "request_timeout",
                    "Please increase timeout or check if the server is overloaded",
                    operation=operation, timeout_seconds=seconds)


def server_error(reason: str) -> RPCError:
    return RPCError(500, INTERNAL_ERROR, "Internal server error", "internal_server_error",
                    "Please retry the request or contact support", reason=reason)


def _json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def parse_envelope(raw: bytes) -> dict[str, Any]:
    """Decode and validate a JSON-RPC 2.0 request envelope."""
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise malformed_json(str(e)) from e
    if not isinstance(body, dict):
        raise invalid_field_type("body", "object", body)
    for field in ("jsonrpc", "id", "method"):
        if field not in body:
            raise missing_field(field)
    if body["jsonrpc"] != "2.0":
        raise invalid_field_type("jsonrpc", '"2.0"', body["jsonrpc"])
    request_id = body["id"]
    if isinstance(request_id, bool) or not isinstance(request_id, (str, int, float)):
        raise invalid_field_type("id", "string or number", request_id)
    if not isinstance(body["method"], str):
        raise invalid_field_type("method", "string", body["method"])
    params = body.get("params")
    if params is not None and not isinstance(params, dict):
        raise invalid_field_type("params", "object", params)
    return body


def _echo_id(raw: bytes) -> Any:
    """Best-effort request id for error bodies."""
    try:
        body = json.loads(raw)
    except ValueError:
        return None
    if isinstance(body, dict):
        request_id = body.get("id")
        if isinstance(request_id, (str, int, float)) and not isinstance(request_id, bool):
            return request_id
    return None


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class _UvicornServer(uvicorn.Server):
    """uvicorn server that leaves process signals to the caller."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


class HTTPTransport(Transport):
    name = "http"

    def __init__(
        self,
        registry: ToolRegistry,
        config: HTTPTransportConfig | None = None,
        *,
        server_name: str = "ops-mcp",
        server_version: str = "0.0.0",
    ) -> None:
        super().__init__()
        self.registry = registry
        self.config = config or HTTPTransportConfig()
        self.server_name = server_name
        self.server_version = server_version
        self._started_at = time.monotonic()
        self._total_requests = 0
        self._counter_lock = threading.Lock()
        self._app: Starlette | None = None
        self._server: _UvicornServer | None = None
        self._socket: socket.socket | None = None
        self._serve_task: asyncio.Task | None = None
        self._methods: dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]] = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "ping": self._ping,
        }

    # -- introspection ------------------------------------------------------

    @property
    def total_requests(self) -> int:
        with self._counter_lock:
            return self._total_requests

    @property
    def port(self) -> int:
        """The bound port (useful when configured with port 0)."""
        if self._socket is not None:
            return self._socket.getsockname()[1]
        return self.config.port

    @property
    def app(self) -> Starlette:
        if self._app is None:
            self._app = Starlette(
                routes=[
                    Route("/health", self._health, methods=["GET"]),
                    Route("/metrics", self._metrics, methods=["GET"]),
                    Route("/mcp", self._endpoint(None), methods=_ANY_METHOD),
                    Route("/mcp/initialize", self._endpoint("initialize"), methods=_ANY_METHOD),
                    Route("/mcp/tools/list", self._endpoint("tools/list"), methods=_ANY_METHOD),
                    Route("/mcp/tools/call", self._endpoint("tools/call"), methods=_ANY_METHOD),
                ],
                middleware=[Middleware(BaseHTTPMiddleware, dispatch=self._log_requests)],
            )
        return self._app

    # -- lifecycle ----------------------------------------------------------

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(128)
        except OSError as e:
            sock.close()
            raise TransportError(f"failed to listen on {self.config.host}:{self.config.port}: {e}") from e
        sock.setblocking(False)
        return sock

    def uvicorn_config(self) -> uvicorn.Config:
        # uvicorn takes whole seconds; round up so sub-second values stay bounded
        return uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
            timeout_keep_alive=math.ceil(self.config.keep_alive),
            timeout_graceful_shutdown=math.ceil(self.config.shutdown_timeout),
        )

    async def start(self) -> None:
        if self.state is not TransportState.CREATED:
            raise TransportError(f"http transport cannot start from state {self.state.value}")
        self._socket = self._bind()
        self._server = _UvicornServer(self.uvicorn_config())
        self._started_at = time.monotonic()
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._socket]))
        self._mark_started()
        logger.info("http transport listening", extra={"host": self.config.host, "port": self.port})
        try:
            await self._serve_task
        except asyncio.CancelledError:
            self._server.should_exit = True
            raise
        except Exception as exc:
            raise TransportError(f"http transport failed: {exc}") from exc
        finally:
            self._socket.close()
            self._mark_stopped()

    async def wait_started(self, timeout: float = 5.0) -> None:
        """Wait until the listener accepts connections."""
        deadline = time.monotonic() + timeout
        while self._server is None or not self._server.started:
            if self._serve_task is not None and self._serve_task.done():
                raise TransportError("http transport exited before it started")
            if time.monotonic() > deadline:
                raise TransportError(f"http transport did not start within {timeout:g}s")
            await asyncio.sleep(0.01)

    async def stop(self, timeout: float | None = None) -> None:
        if self._server is None or self._serve_task is None or self._serve_task.done():
            self._mark_stopped()
            return
        timeout = self.config.shutdown_timeout if timeout is None else timeout
        self._server.should_exit = True
        done, _ = await asyncio.wait({self._serve_task}, timeout=timeout)
        if not done:
            logger.warning("http transport graceful shutdown timed out, forcing exit", extra={"timeout": timeout})
            self._server.force_exit = True
            await asyncio.wait({self._serve_task}, timeout=1.0)
        self._mark_stopped()

    # -- middleware ---------------------------------------------------------

    async def _log_requests(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        with self._counter_lock:
            self._total_requests += 1
        start = time.monotonic()
        response = await call_next(request)
        record_http_request(request.method, response.status_code)
        logger.info(
            "http request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return response

    # -- handlers -----------------------------------------------------------

    async def _health(self, request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - self._started_at, 1),
            "total_requests": self.total_requests,
            "tools": self.registry.count(),
        })

    async def _metrics(self, request: Request) -> Response:
        body, content_type = render()
        return Response(body, media_type=content_type)

    def _endpoint(self, expected: str | None):
        async def endpoint(request: Request) -> Response:
            if request.method != "POST":
                return JSONResponse(
                    {"error": "method_not_allowed", "message": "Only POST method is allowed"},
                    status_code=405,
                    headers={"Allow": "POST"},
                )
            return await self._handle(request, expected)

        return endpoint

    async def _handle(self, request: Request, expected: str | None) -> Response:
        raw = b""
        try:
            try:
                raw = await asyncio.wait_for(request.body(), self.config.read_timeout)
            except asyncio.TimeoutError:
                raise request_timeout("read_body", self.config.read_timeout) from None
            body = parse_envelope(raw)
            method = body["method"]
            if expected is not None and method != expected:
                raise protocol_error(f"method {method!r} is not served by {request.url.path}")
            handler = self._methods.get(method)
            if handler is None:
                raise method_not_found(method)
            run = handler(body.get("params") or {})
            if self.config.write_timeout > 0:
                try:
                    result = await asyncio.wait_for(run, self.config.write_timeout)
                except asyncio.TimeoutError:
                    raise request_timeout(method, self.config.write_timeout) from None
            else:
                result = await run
        except RPCError as e:
            logger.debug("rejected request", extra={"path": request.url.path, "code": e.code, "reason": e.message})
            return e.response(_echo_id(raw))
        except Exception as e:  # noqa: BLE001
            logger.exception("unhandled error serving request", extra={"path": request.url.path})
            return server_error(str(e)).response(_echo_id(raw))
        return JSONResponse({"jsonrpc": "2.0", "id": body["id"], "result": result})

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "protocolVersion": LATEST_PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": self.server_name, "version": self.server_version},
        }

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        tools = self.registry.list_tools()
        return {"tools": [t.model_dump(mode="json", by_alias=True, exclude_none=True) for t in tools]}

    async def _tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        if "name" not in params:
            raise missing_field("params.name")
        name = params["name"]
        if not isinstance(name, str):
            raise invalid_field_type("params.name", "string", name)
        if "arguments" in params:
            arguments = params["arguments"]
        else:
            arguments = {k: v for k, v in params.items() if k != "name"}
        try:
            result = await self.registry.call(name, arguments)
        except ToolNotFoundError:
            raise tool_not_found(name) from None
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)
