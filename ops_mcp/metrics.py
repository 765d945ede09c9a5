"""
Prometheus metrics.

Collected in the default prometheus_client registry and exposed by the HTTP
transport at ``GET /metrics``. A stdio server still records them; nothing
scrapes them there.
"""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest

TOOL_CALL_COUNT = Counter(
    "ops_mcp_tool_calls_total",
    "Total number of tool calls by outcome",
    ["tool", "provider", "status"],
)

TOOL_CALL_DURATION = Histogram(
    "ops_mcp_tool_call_duration_seconds",
    "Tool call duration in seconds",
    ["tool"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

HTTP_REQUEST_COUNT = Counter(
    "ops_mcp_http_requests_total",
    "Total number of HTTP requests received",
    ["method", "status"],
)

REGISTERED_TOOLS = Gauge(
    "ops_mcp_registered_tools",
    "Number of tools registered per provider",
    ["provider"],
)

SERVER_INFO = Info("ops_mcp_server", "Server build information")


def record_tool_call(tool: str, provider: str, status: str, duration: float) -> None:
    """``status`` is success, error (the tool reported isError) or exception."""
    TOOL_CALL_COUNT.labels(tool=tool, provider=provider, status=status).inc()
    TOOL_CALL_DURATION.labels(tool=tool).observe(duration)


def record_http_request(method: str, status: int) -> None:
    HTTP_REQUEST_COUNT.labels(method=method, status=str(status)).inc()


def set_registered_tools(provider: str, count: int) -> None:
    REGISTERED_TOOLS.labels(provider=provider).set(count)


def set_server_info(version: str, transport: str) -> None:
    SERVER_INFO.info({"version": version, "transport": transport})


def render() -> tuple[bytes, str]:
    """Exposition body and content type for a scrape."""
    return generate_latest(), CONTENT_TYPE_LATEST
