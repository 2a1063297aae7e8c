from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator

from whatspdf.core.chat_parser import ChatParseError, parse_export
from whatspdf.core.config import Settings
from whatspdf.core.context import bound_client_id
from whatspdf.core.schema import ChatExport, ProcessingOptions
from whatspdf.domain import ProcessingStep
from whatspdf.infrastructure.documents import get_document_renderer

logger = logging.getLogger(__name__)

FREE_TIER_MESSAGE_LIMIT = 150
FREE_TIER_MEDIA_SIZE_LIMIT = 20 * 1024 * 1024

_END = None


def is_payment_required(message_count: int, media_size_bytes: int) -> bool:
    return message_count > FREE_TIER_MESSAGE_LIMIT or media_size_bytes > FREE_TIER_MEDIA_SIZE_LIMIT


@dataclass
class ProcessingRequest:
    client_id: str
    filename: str
    file_path: Path
    options: ProcessingOptions = field(default_factory=ProcessingOptions)


@dataclass
class ProcessingJob:
    client_id: str
    status: str = "queued"
    progress: int = 0
    document_path: Path | None = None
    events: asyncio.Queue = field(default_factory=asyncio.Queue)
    task: asyncio.Task | None = None


class ProcessingWorker:
    """Runs uploads through extract → parse → payment check → render.

    Every job publishes its progress events into its own queue; the status
    stream drains that queue until the end marker.
    """

    def __init__(self, storage_root: Path, *, checkout_base_url: str | None = None) -> None:
        self._storage_root = storage_root
        self._checkout_base_url = checkout_base_url.rstrip("/") if checkout_base_url else None
        self._jobs: dict[str, ProcessingJob] = {}
        self._latest_document: Path | None = None

    @property
    def uploads_dir(self) -> Path:
        path = self._storage_root / "uploads"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def documents_dir(self) -> Path:
        path = self._storage_root / "documents"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def latest_document(self) -> Path | None:
        return self._latest_document

    def new_client_id(self) -> str:
        return str(uuid.uuid4())

    def get_job(self, client_id: str) -> ProcessingJob | None:
        return self._jobs.get(client_id)

    def enqueue(self, request: ProcessingRequest) -> ProcessingJob:
        job = ProcessingJob(client_id=request.client_id)
        self._jobs[request.client_id] = job
        job.task = asyncio.get_running_loop().create_task(self._run(job, request))
        return job

    async def stream(self, client_id: str) -> AsyncIterator[dict[str, Any]]:
        job = self._jobs.get(client_id)
        if job is None:
            logger.warning("status stream requested for unknown client", extra={"client_id": client_id})
            return
        while True:
            event = await job.events.get()
            if event is _END:
                break
            yield event
        # The end marker is consumed once; later requests for this id end at once.
        self._jobs.pop(client_id, None)
        logger.debug("released finished job", extra={"client_id": client_id})

    def _publish(self, job: ProcessingJob, progress: int, step: ProcessingStep | None = None, **fields: Any) -> None:
        job.progress = progress
        event: dict[str, Any] = {"progress": progress}
        if step is not None:
            event["step"] = int(step)
        event.update({key: value for key, value in fields.items() if value is not None})
        job.events.put_nowait(event)

    def _end(self, job: ProcessingJob, status: str) -> None:
        job.status = status
        job.events.put_nowait(_END)

    async def _run(self, job: ProcessingJob, request: ProcessingRequest) -> None:
        with bound_client_id(job.client_id):
            job.status = "processing"
            logger.info("processing started", extra={"upload": request.filename})
            try:
                self._publish(job, 5, ProcessingStep.EXTRACT_ZIP)
                self._publish(job, 20, ProcessingStep.EXTRACT_ZIP)
                self._publish(job, 30, ProcessingStep.PARSE_MESSAGES)
                chat = await asyncio.to_thread(
                    parse_export,
                    request.file_path,
                    request.options,
                    original_filename=request.filename,
                )
                self._publish(job, 60, ProcessingStep.CONVERT_VOICE)

                message_count = len(chat.messages)
                if is_payment_required(message_count, chat.media_size_bytes):
                    self._suspend_for_payment(job, chat)
                    return

                self._publish(job, 80, ProcessingStep.GENERATE_PDF)
                document = await asyncio.to_thread(self._render, chat)
                job.document_path = document
                self._latest_document = document
                chat.pdf_url = f"/api/whatsapp/documents/{document.name}"
                self._publish(
                    job,
                    100,
                    done=True,
                    pdfUrl=chat.pdf_url,
                    chatData=chat.to_wire(),
                )
                logger.info("processing completed", extra={"messages": message_count})
                self._end(job, "completed")
            except ChatParseError as exc:
                logger.warning("upload could not be parsed: %s", exc)
                self._publish(job, job.progress, error=f"Failed to parse file: {exc}")
                self._end(job, "failed")
            except Exception:
                logger.exception("processing failed")
                self._publish(job, job.progress, error="Processing failed")
                self._end(job, "failed")
            finally:
                request.file_path.unlink(missing_ok=True)

    def _suspend_for_payment(self, job: ProcessingJob, chat: ChatExport) -> None:
        bundle_id = uuid.uuid4().hex
        checkout_url = f"{self._checkout_base_url}/{bundle_id}" if self._checkout_base_url else None
        logger.info(
            "free tier exceeded, payment required",
            extra={"messages": len(chat.messages), "media_bytes": chat.media_size_bytes, "bundle_id": bundle_id},
        )
        self._publish(
            job,
            70,
            ProcessingStep.PAYMENT_REQUIRED,
            requiresPayment=True,
            messageCount=len(chat.messages),
            mediaSizeBytes=chat.media_size_bytes,
            bundleId=bundle_id,
            checkoutUrl=checkout_url,
        )
        # No done event: the stream simply ends while the job waits for payment.
        self._end(job, "awaiting_payment")

    def _render(self, chat: ChatExport) -> Path:
        renderer = get_document_renderer()
        return renderer.render(chat, self.documents_dir)


_worker: ProcessingWorker | None = None


def get_processing_worker() -> ProcessingWorker:
    global _worker
    if _worker is None:
        settings = Settings.from_env()
        _worker = ProcessingWorker(settings.storage_root, checkout_base_url=settings.checkout_base_url)
    return _worker


def reset_processing_worker() -> None:
    """Utility used in tests to drop the global worker."""

    global _worker
    _worker = None
