"""Progress notification channels.

The state machine only sees :class:`ProgressChannel`: raw payload strings
arrive through ``on_event`` and the end of the stream through ``on_close``.
:class:`SSEProgressChannel` is the long-lived HTTP implementation used
against the processing backend.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Protocol

import httpx

logger = logging.getLogger(__name__)

OnEvent = Callable[[str], None]
OnClose = Callable[[BaseException | None], None]


class Subscription:
    """Handle on one open channel. ``close`` is safe to call from callbacks."""

    def __init__(self) -> None:
        self._closed = False
        self._task: asyncio.Task[None] | None = None

    def attach(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        if self._task is None:
            return
        with suppress(asyncio.CancelledError):
            await self._task


class ProgressChannel(Protocol):
    """Contract for progress transports."""

    def subscribe(self, session_id: str, on_event: OnEvent, on_close: OnClose) -> Subscription:
        """Start delivering payloads for ``session_id``; must run inside an event loop."""


@dataclass(slots=True)
class ServerSentEvent:
    data: str
    event: str = "message"
    id: str | None = None


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """Decode an ``text/event-stream`` body into events.

    A trailing event that is not terminated by a blank line is dropped.
    """
    data: list[str] = []
    event = "message"
    event_id: str | None = None

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield ServerSentEvent(data="\n".join(data), event=event, id=event_id)
            data = []
            event = "message"
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data.append(value)
        elif name == "event":
            event = value or "message"
        elif name == "id":
            event_id = value


class SSEProgressChannel:
    """Server-sent events over ``GET <path>?clientId=...``."""

    def __init__(
        self,
        base_url: str,
        *,
        path: str = "/api/whatsapp/process-status",
        read_timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{path}"
        self._timeout = httpx.Timeout(read_timeout)
        self._client = http_client or httpx.AsyncClient()
        self._owns_client = http_client is None

    def subscribe(self, session_id: str, on_event: OnEvent, on_close: OnClose) -> Subscription:
        subscription = Subscription()
        task = asyncio.get_running_loop().create_task(self._run(session_id, subscription, on_event, on_close))
        subscription.attach(task)
        return subscription

    async def _run(
        self,
        session_id: str,
        subscription: Subscription,
        on_event: OnEvent,
        on_close: OnClose,
    ) -> None:
        cause: BaseException | None = None
        try:
            async with self._client.stream(
                "GET",
                self._url,
                params={"clientId": session_id},
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
                timeout=self._timeout,
            ) as response:
                response.raise_for_status()
                async for message in iter_sse(response.aiter_lines()):
                    if subscription.closed:
                        break
                    if message.event != "message":
                        logger.debug("skipping %s event on progress stream", message.event)
                        continue
                    on_event(message.data)
                    if subscription.closed:
                        break
        except httpx.HTTPError as exc:
            cause = exc

        if not subscription.closed:
            subscription.close()
            on_close(cause)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = [
    "OnClose",
    "OnEvent",
    "ProgressChannel",
    "SSEProgressChannel",
    "ServerSentEvent",
    "Subscription",
    "iter_sse",
]
