"""
Prometheus tools (HTTP API).

Tools:
  prometheus_query_tool        — instant PromQL query
  prometheus_query_range_tool  — range PromQL query (default: last hour, 15s step)
  prometheus_label_names_tool  — all label names
  prometheus_targets_tool      — scrape targets and their health

Every tool takes an optional ``prometheus_url``; the default comes from
``$PROMETHEUS_URL`` and falls back to http://localhost:9090.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import httpx
from pydantic import Field

from ops_mcp.errors import ArgumentError, BackendError
from ops_mcp.formatters import pretty_json_or_raw
from ops_mcp.httpclient import http_client
from ops_mcp.params import READ_ONLY, RequiredStr, ToolDefinition, ToolParams, define_tool

logger = logging.getLogger(__name__)

DEFAULT_PROMETHEUS_URL = "http://localhost:9090"
DEFAULT_STEP = "15s"
DEFAULT_RANGE = 3600  # seconds


def default_prometheus_url() -> str:
    return os.environ.get("PROMETHEUS_URL", "").strip() or DEFAULT_PROMETHEUS_URL


async def prometheus_get(base_url: str, path: str, params: dict[str, Any] | None = None) -> str:
    """GET ``path`` from the Prometheus API and return the body, pretty-printed when JSON."""
    base_url = (base_url or default_prometheus_url()).rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise ArgumentError(f"Invalid Prometheus URL: {base_url}", field="prometheus_url")
    url = f"{base_url}{path}"
    logger.debug("prometheus request", extra={"url": url})
    async with http_client() as client:
        try:
            resp = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise BackendError(f"failed to query Prometheus: {e}").with_context("prometheus_url", base_url) from e
    if resp.status_code != 200:
        raise BackendError(
            f"Prometheus API error ({resp.status_code}): {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        ).with_context("prometheus_url", base_url)
    return pretty_json_or_raw(resp.text)


class PrometheusParams(ToolParams):
    prometheus_url: str = Field("", description="Prometheus server URL (default: $PROMETHEUS_URL or http://localhost:9090)")


class QueryParams(PrometheusParams):
    query: RequiredStr = Field(description="PromQL query to execute")


class RangeQueryParams(QueryParams):
    start: str = Field("", description="Start time (Unix timestamp or RFC 3339); default one hour ago")
    end: str = Field("", description="End time (Unix timestamp or RFC 3339); default now")
    step: str = Field(DEFAULT_STEP, description="Query resolution step (default: 15s)")


@define_tool(
    "prometheus_query_tool",
    "Execute a PromQL query against Prometheus",
    QueryParams,
    error_prefix="Prometheus query failed",
    annotations=READ_ONLY,
)
async def query_tool(p: QueryParams) -> str:
    try:
        return await prometheus_get(p.prometheus_url, "/api/v1/query", {"query": p.query, "time": int(time.time())})
    except BackendError as e:
        raise e.with_context("query", p.query)


@define_tool(
    "prometheus_query_range_tool",
    "Execute a PromQL range query against Prometheus",
    RangeQueryParams,
    error_prefix="Prometheus range query failed",
    annotations=READ_ONLY,
)
async def query_range_tool(p: RangeQueryParams) -> str:
    now = int(time.time())
    params = {
        "query": p.query,
        "start": p.start or str(now - DEFAULT_RANGE),
        "end": p.end or str(now),
        "step": p.step or DEFAULT_STEP,
    }
    try:
        return await prometheus_get(p.prometheus_url, "/api/v1/query_range", params)
    except BackendError as e:
        raise e.with_context("query", p.query)


@define_tool(
    "prometheus_label_names_tool",
    "Get all available labels from Prometheus",
    PrometheusParams,
    error_prefix="Prometheus label names query failed",
    annotations=READ_ONLY,
)
async def label_names_tool(p: PrometheusParams) -> str:
    return await prometheus_get(p.prometheus_url, "/api/v1/labels")


@define_tool(
    "prometheus_targets_tool",
    "Get all Prometheus targets and their status",
    PrometheusParams,
    error_prefix="Prometheus targets query failed",
    annotations=READ_ONLY,
)
async def targets_tool(p: PrometheusParams) -> str:
    return await prometheus_get(p.prometheus_url, "/api/v1/targets")


PROMETHEUS_TOOLS: list[ToolDefinition] = [query_tool, query_range_tool, label_names_tool, targets_tool]
