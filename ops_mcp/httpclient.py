"""
Context-scoped HTTP client for REST-backed tools (ArgoCD, Prometheus).

This is the HTTP counterpart of the shell executor binding: handlers call
``http_client()`` and tests bind an ``httpx.AsyncClient`` built on
``httpx.MockTransport`` with ``use_http_client``.
"""

from __future__ import annotations

import contextvars
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator

import httpx

DEFAULT_TIMEOUT = 30.0  # seconds

_current_client: contextvars.ContextVar[httpx.AsyncClient | None] = contextvars.ContextVar(
    "http_client", default=None
)


@contextmanager
def use_http_client(client: httpx.AsyncClient) -> Iterator[httpx.AsyncClient]:
    token = _current_client.set(client)
    try:
        yield client
    finally:
        _current_client.reset(token)


@asynccontextmanager
async def http_client(timeout: float = DEFAULT_TIMEOUT) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the bound client, or a short-lived one closed on exit."""
    bound = _current_client.get()
    if bound is not None:
        yield bound
        return
    async with httpx.AsyncClient(timeout=timeout) as client:
        yield client
