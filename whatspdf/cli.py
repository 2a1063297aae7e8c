"""Command line client: submit a chat export and follow its progress."""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import httpx

from whatspdf.application import JobService
from whatspdf.core.config import Settings
from whatspdf.core.errors import JobError
from whatspdf.core.logging_config import configure_logging
from whatspdf.core.schema import ProcessingOptions
from whatspdf.domain import JobSession, PaymentState, SessionOutcome
from whatspdf.infrastructure import ArtifactDownloader, CheckoutClient

EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_PAYMENT_REQUIRED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert a WhatsApp chat export into a document")
    parser.add_argument("file", type=Path, help="Chat export ZIP")
    parser.add_argument("--base-url", help="Processing server (defaults to WHATSPDF_BASE_URL)")
    parser.add_argument("--no-voice", action="store_true", help="Skip voice messages")
    parser.add_argument("--no-timestamps", action="store_true", help="Omit message timestamps")
    parser.add_argument("--images", action="store_true", help="Include images")
    parser.add_argument("--attachments", action="store_true", help="Include other attachments")
    parser.add_argument("--output", type=Path, help="Where to save the generated document")
    parser.add_argument("--log-level", default="WARNING")
    return parser


class ProgressPrinter:
    """Prints progress lines whenever the session changes."""

    def __init__(self, stream=sys.stdout) -> None:
        self._stream = stream
        self._last: tuple[int, int | None] | None = None

    def __call__(self, session: JobSession) -> None:
        active = session.steps.active_index()
        state = (session.progress, active)
        if state == self._last:
            return
        self._last = state
        label = session.steps[active].label if active is not None else "Finished"
        print(f"[{session.progress:3d}%] {label}", file=self._stream)


def _report(session: JobSession, *, checkout_url: str | None = None) -> int:
    if session.outcome is SessionOutcome.SUCCESS:
        url = session.artifact.pdf_url if session.artifact else None
        print(f"Done. Document: {url or 'available for download'}")
        return EXIT_SUCCESS
    if session.outcome is SessionOutcome.SUSPENDED_AWAITING_PAYMENT:
        payment = session.payment
        print("Payment required to finish this export.")
        if payment is not None:
            if payment.message_count is not None:
                print(f"  Messages: {payment.message_count}")
            if payment.media_size_bytes is not None:
                print(f"  Media: {payment.media_size_bytes / (1024 * 1024):.1f} MB")
            if payment.bundle_id:
                print(f"  Bundle: {payment.bundle_id}")
        checkout_url = checkout_url or (payment.checkout_url if payment else None)
        if checkout_url:
            print(f"  Checkout: {checkout_url}")
        return EXIT_PAYMENT_REQUIRED
    message = session.error.message if session.error else "Processing failed"
    print(f"Error processing file: {message}", file=sys.stderr)
    return EXIT_FAILED


async def _checkout_link(
    base_url: str,
    payment: PaymentState | None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> str | None:
    """Return the checkout link, asking the billing service when the stream had none."""
    if payment is None:
        return None
    if payment.checkout_url or not payment.bundle_id:
        return payment.checkout_url
    checkout = CheckoutClient(base_url, http_client=http_client)
    try:
        return await checkout.create_checkout(payment.bundle_id)
    except JobError as exc:
        print(f"Checkout unavailable: {exc.message}", file=sys.stderr)
        return None
    finally:
        await checkout.aclose()


async def run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    if args.base_url:
        settings.base_url = args.base_url.rstrip("/")

    options = ProcessingOptions(
        include_voice_messages=not args.no_voice,
        include_timestamps=not args.no_timestamps,
        include_images=args.images,
        include_attachments=args.attachments,
    )
    service = JobService.from_settings(settings, on_update=ProgressPrinter())
    try:
        session = await service.process(args.file, options)
    except JobError as exc:
        print(f"Error processing file: {exc.message}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        await service.aclose()

    checkout_url = None
    if session.outcome is SessionOutcome.SUSPENDED_AWAITING_PAYMENT:
        checkout_url = await _checkout_link(settings.base_url, session.payment)
    code = _report(session, checkout_url=checkout_url)
    if code == EXIT_SUCCESS and args.output:
        downloader = ArtifactDownloader(settings.base_url)
        try:
            saved = await downloader.download(args.output)
        except JobError as exc:
            print(f"Download failed: {exc.message}", file=sys.stderr)
            return EXIT_FAILED
        finally:
            await downloader.aclose()
        print(f"Saved to {saved}")
    return code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if not args.file.is_file():
        print(f"No such file: {args.file}", file=sys.stderr)
        return EXIT_FAILED
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
