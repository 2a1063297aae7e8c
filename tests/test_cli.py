from __future__ import annotations

import asyncio
import io
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx

from whatspdf import cli
from whatspdf.core.errors import ProcessingFailed
from whatspdf.domain import (
    Artifact,
    DEFAULT_STEPS,
    JobSession,
    PaymentState,
    SessionOutcome,
    StepRegistry,
)


def _session() -> JobSession:
    return JobSession(client_id="abc", steps=StepRegistry(DEFAULT_STEPS))


def test_parser_maps_flags():
    args = cli.build_parser().parse_args(
        ["chat.zip", "--base-url", "http://api.test", "--no-voice", "--images", "--output", "out.pdf"]
    )

    assert args.file == Path("chat.zip")
    assert args.base_url == "http://api.test"
    assert args.no_voice is True
    assert args.images is True
    assert args.attachments is False
    assert args.output == Path("out.pdf")


def test_progress_printer_prints_each_change_once():
    stream = io.StringIO()
    printer = cli.ProgressPrinter(stream)
    session = _session()

    session.progress = 20
    printer(session)
    printer(session)
    session.steps.mark_done(0)
    session.progress = 30
    printer(session)

    assert stream.getvalue().splitlines() == [
        "[ 20%] Extracting ZIP contents...",
        "[ 30%] " + session.steps[1].label,
    ]


def test_report_success(capsys):
    session = _session()
    session.outcome = SessionOutcome.SUCCESS
    session.artifact = Artifact(pdf_url="/api/whatsapp/documents/a.txt")

    assert cli._report(session) == cli.EXIT_SUCCESS
    assert "/api/whatsapp/documents/a.txt" in capsys.readouterr().out


def test_report_payment_required(capsys):
    session = _session()
    session.outcome = SessionOutcome.SUSPENDED_AWAITING_PAYMENT
    session.payment = PaymentState(message_count=151, bundle_id="b-1", checkout_url="https://pay.example/b-1")

    assert cli._report(session) == cli.EXIT_PAYMENT_REQUIRED
    out = capsys.readouterr().out
    assert "Messages: 151" in out
    assert "https://pay.example/b-1" in out


def test_report_failure(capsys):
    session = _session()
    session.outcome = SessionOutcome.FAILED
    session.error = ProcessingFailed("bad file")

    assert cli._report(session) == cli.EXIT_FAILED
    assert "bad file" in capsys.readouterr().err


def test_main_rejects_missing_file(tmp_path, capsys):
    assert cli.main([str(tmp_path / "missing.zip")]) == cli.EXIT_FAILED
    assert "No such file" in capsys.readouterr().err


def _checkout(payment: PaymentState, handler) -> str | None:
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            return await cli._checkout_link("http://api.test", payment, http_client=http_client)

    return asyncio.run(run())


def test_checkout_link_requested_when_stream_had_none():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"checkoutUrl": "https://pay.example/s/b-1"})

    url = _checkout(PaymentState(message_count=151, bundle_id="b-1"), handler)

    assert url == "https://pay.example/s/b-1"
    assert seen == [("POST", "/api/checkout/b-1")]


def test_checkout_link_from_stream_is_reused():
    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    url = _checkout(PaymentState(bundle_id="b-1", checkout_url="https://pay.example/b-1"), handler)

    assert url == "https://pay.example/b-1"


def test_checkout_failure_is_reported_and_payment_still_required(capsys):
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Not Found"})

    url = _checkout(PaymentState(bundle_id="b-1"), handler)

    assert url is None
    assert "Checkout unavailable: Not Found" in capsys.readouterr().err


def test_report_prints_fetched_checkout_link(capsys):
    session = _session()
    session.outcome = SessionOutcome.SUSPENDED_AWAITING_PAYMENT
    session.payment = PaymentState(bundle_id="b-1")

    assert cli._report(session, checkout_url="https://pay.example/s/b-1") == cli.EXIT_PAYMENT_REQUIRED
    assert "Checkout: https://pay.example/s/b-1" in capsys.readouterr().out
