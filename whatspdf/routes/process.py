from __future__ import annotations

import json
import logging
import shutil
from datetime import date
from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse, StreamingResponse
from pydantic import ValidationError

from whatspdf.core.schema import ProcessingOptions
from whatspdf.workers.pipeline import ProcessingRequest, get_processing_worker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["processing"])


def _is_zip(upload: UploadFile) -> bool:
    filename = (upload.filename or "").lower()
    return upload.content_type in {"application/zip", "application/x-zip-compressed"} or filename.endswith(".zip")


@router.post("/process")
async def process_file(
    file: UploadFile | None = File(default=None),
    options: str = Form(default="{}"),
) -> dict:
    """Store the export and start background processing; returns the stream id."""
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        if not _is_zip(file):
            raise HTTPException(status_code=400, detail="Only ZIP files are allowed")
        try:
            parsed_options = ProcessingOptions.model_validate_json(options or "{}")
        except ValidationError:
            raise HTTPException(status_code=400, detail="Invalid processing options") from None

        worker = get_processing_worker()
        client_id = worker.new_client_id()
        safe_name = Path(file.filename).name
        target = worker.uploads_dir / f"{client_id}-{safe_name}"
        with target.open("wb") as buffer:
            shutil.copyfileobj(file.file, buffer)
    finally:
        await file.close()

    worker.enqueue(
        ProcessingRequest(
            client_id=client_id,
            filename=safe_name,
            file_path=target,
            options=parsed_options,
        )
    )
    logger.info("upload accepted", extra={"client_id": client_id, "upload": safe_name})
    return {"clientId": client_id}


@router.get("/process-status")
async def process_status(client_id: str = Query(alias="clientId")) -> StreamingResponse:
    """Server-sent progress events for one upload."""
    worker = get_processing_worker()

    async def event_stream():
        async for event in worker.stream(client_id):
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/download")
async def download_document() -> FileResponse:
    document = get_processing_worker().latest_document
    if document is None or not document.exists():
        raise HTTPException(status_code=404, detail="PDF not found")
    return FileResponse(
        document,
        filename=f"WhatsApp_Chat_{date.today().isoformat()}{document.suffix}",
    )


@router.get("/documents/{filename}")
async def get_document(filename: str) -> FileResponse:
    worker = get_processing_worker()
    document = worker.documents_dir / Path(filename).name
    if not document.is_file():
        raise HTTPException(status_code=404, detail="Document not found")
    return FileResponse(document)
