from __future__ import annotations

import asyncio
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx

from whatspdf.infrastructure import SSEProgressChannel, iter_sse


async def _lines(*items: str):
    for item in items:
        yield item


async def _collect(lines):
    return [event async for event in iter_sse(lines)]


def test_iter_sse_decodes_events():
    events = asyncio.run(
        _collect(
            _lines(
                ": keep-alive",
                'data: {"progress": 5}',
                "",
                "event: close",
                "data: {}",
                "",
                "id: 7",
                "data: first",
                "data: second",
                "",
                "data: unterminated",
            )
        )
    )

    assert [(event.event, event.data) for event in events] == [
        ("message", '{"progress": 5}'),
        ("close", "{}"),
        ("message", "first\nsecond"),
    ]
    assert events[2].id == "7"


def _listen(handler):
    received: list[str] = []
    closes: list[BaseException | None] = []
    seen: dict[str, object] = {}

    def tracking_handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["accept"] = request.headers.get("accept")
        return handler(request)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(tracking_handler)) as http_client:
            channel = SSEProgressChannel("http://backend.test", http_client=http_client)
            subscription = channel.subscribe("abc", received.append, closes.append)
            await subscription.wait()
            return subscription

    subscription = asyncio.run(run())
    return received, closes, seen, subscription


def test_channel_forwards_messages_then_reports_closure():
    body = (
        b'data: {"progress": 5, "step": 0}\n\n'
        b"event: ping\ndata: {}\n\n"
        b'data: {"progress": 30, "step": 1}\n\n'
    )

    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    received, closes, seen, subscription = _listen(handler)

    assert seen["url"] == "http://backend.test/api/whatsapp/process-status?clientId=abc"
    assert seen["accept"] == "text/event-stream"
    assert received == ['{"progress": 5, "step": 0}', '{"progress": 30, "step": 1}']
    assert closes == [None]
    assert subscription.closed


def test_transport_error_is_reported_as_closure_cause():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadError("stream reset", request=request)

    received, closes, _, _ = _listen(handler)

    assert received == []
    assert len(closes) == 1
    assert isinstance(closes[0], httpx.ReadError)


def test_error_status_is_reported_as_closure_cause():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    received, closes, _, _ = _listen(handler)

    assert received == []
    assert isinstance(closes[0], httpx.HTTPStatusError)


def test_closing_from_callback_stops_delivery_without_closure_report():
    body = b'data: {"progress": 1}\n\ndata: {"progress": 2}\n\n'
    received: list[str] = []
    closes: list[BaseException | None] = []

    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            channel = SSEProgressChannel("http://backend.test", http_client=http_client)
            holder = {}

            def on_event(payload: str) -> None:
                received.append(payload)
                holder["subscription"].close()

            holder["subscription"] = channel.subscribe("abc", on_event, closes.append)
            await holder["subscription"].wait()

    asyncio.run(run())

    assert received == ['{"progress": 1}']
    assert closes == []
