"""
Checks that hold for every registered tool.
"""

from __future__ import annotations

import re

import httpx
import pytest

from ops_mcp.providers import Provider, register_providers
from ops_mcp.registry import ToolRegistry

_REGISTRY = ToolRegistry()
register_providers(_REGISTRY, list(Provider))
ALL_TOOLS = _REGISTRY.list_tools()
WITH_REQUIRED = [t for t in ALL_TOOLS if t.inputSchema.get("required")]


def test_names_are_unique_and_snake_case():
    names = [t.name for t in ALL_TOOLS]
    assert len(names) == len(set(names))
    assert all(re.fullmatch(r"[a-z][a-z0-9_]*", n) for n in names)


@pytest.mark.parametrize("tool", ALL_TOOLS, ids=lambda t: t.name)
def test_schema_and_annotations(tool):
    assert tool.description
    assert tool.inputSchema["type"] == "object"
    for key in tool.inputSchema.get("required", []):
        assert key in tool.inputSchema["properties"]
    assert tool.annotations is not None
    assert tool.annotations.readOnlyHint is not None


@pytest.mark.parametrize("tool", WITH_REQUIRED, ids=lambda t: t.name)
async def test_missing_required_field_runs_nothing(tool, executor, mock_http, monkeypatch):
    monkeypatch.setenv("ARGOCD_BASE_URL", "https://argocd.example.com")
    monkeypatch.setenv("ARGOCD_API_TOKEN", "token")
    requests = mock_http(lambda req: httpx.Response(200, json={}))

    result = await _REGISTRY.call(tool.name, {})

    first = tool.inputSchema["required"][0]
    assert result.isError is True
    assert result.content[0].text == f"{first} parameter is required"
    assert executor.call_count == 0
    assert requests == []
