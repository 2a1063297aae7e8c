"""
Session context for log correlation.

The listener binds the active client id so every log line written while a
progress event is handled carries it.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

_client_id: ContextVar[str | None] = ContextVar("client_id", default=None)


def get_context() -> dict[str, Any]:
    ctx: dict[str, Any] = {}
    client_id = _client_id.get()
    if client_id:
        ctx["client_id"] = client_id
    return ctx


@contextmanager
def bound_client_id(client_id: str) -> Iterator[None]:
    token = _client_id.set(client_id)
    try:
        yield
    finally:
        _client_id.reset(token)
