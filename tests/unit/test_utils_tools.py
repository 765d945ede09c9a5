"""
Unit tests for ops_mcp/tools/utils.py
"""

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from ops_mcp.tools import utils
from tests.conftest import call


async def test_shell_splits_without_shell(executor):
    executor.add_command("grep", ["-r", "a b", "/etc"], "match")
    result, text = await call(utils.shell, {"command": "grep -r 'a b' /etc"})
    assert result.isError is False
    assert text == "match"


async def test_shell_operators_are_plain_words(executor):
    executor.add_partial_match("ls", [], "")
    await call(utils.shell, {"command": "ls | wc -l > out"})
    assert executor.calls[0].args == ["|", "wc", "-l", ">", "out"]


async def test_shell_requires_command(executor):
    result, text = await call(utils.shell, {"command": "  "})
    assert result.isError is True
    assert text == "command parameter is required"
    assert executor.call_count == 0


async def test_shell_unbalanced_quotes(executor):
    _, text = await call(utils.shell, {"command": "echo 'oops"})
    assert text == "invalid command: No closing quotation"
    assert executor.call_count == 0


async def test_shell_failure(executor):
    executor.add_command("false", [], error="false exited with code 1")
    result, text = await call(utils.shell, {"command": "false"})
    assert result.isError is True
    assert text == "false exited with code 1"


async def test_current_time_is_iso8601():
    result, text = await call(utils.datetime_get_current_time)
    assert result.isError is False
    parsed = datetime.fromisoformat(text)
    assert parsed.tzinfo is not None


async def test_echo():
    _, text = await call(utils.echo, {"message": "hello, world"})
    assert text == "hello, world"


async def test_echo_requires_message():
    result, text = await call(utils.echo, {})
    assert result.isError is True
    assert text == "message parameter is required"


async def test_sleep():
    result, text = await call(utils.sleep, {"duration": 0.01})
    assert result.isError is False
    assert text == "slept for 0.01 seconds"


async def test_sleep_accepts_numeric_string():
    _, text = await call(utils.sleep, {"duration": "0"})
    assert text == "slept for 0.00 seconds"


async def test_sleep_rejects_negative():
    result, text = await call(utils.sleep, {"duration": -1})
    assert result.isError is True
    assert text == "duration must be non-negative"


@pytest.mark.parametrize("duration", ["inf", "-inf", "nan", float("inf")])
async def test_sleep_rejects_non_finite(duration):
    result, text = await call(utils.sleep, {"duration": duration})
    assert result.isError is True
    assert text == "duration must be a finite number"


async def test_sleep_is_cancellable():
    task = asyncio.create_task(utils.sleep.handler({"duration": 30}))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=1)
