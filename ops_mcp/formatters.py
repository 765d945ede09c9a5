"""Shared result envelope helpers."""

from __future__ import annotations

import json
from typing import Any

from mcp.types import CallToolResult, TextContent


# ---------------------------------------------------------------------------
# Result envelopes
# ---------------------------------------------------------------------------

def text_result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=False)


def error_result(msg: str) -> CallToolResult:
    """In-band failure: a protocol-level success whose ``isError`` flag is set."""
    return CallToolResult(content=[TextContent(type="text", text=msg)], isError=True)


def json_result(data: Any) -> CallToolResult:
    return text_result(json.dumps(data, indent=2, sort_keys=False, default=str))


def result_text(result: CallToolResult) -> str:
    """Concatenate the text items of ``result``."""
    return "\n".join(item.text for item in result.content if isinstance(item, TextContent))


def pretty_json_or_raw(body: str) -> str:
    try:
        return json.dumps(json.loads(body), indent=2)
    except ValueError:
        return body
