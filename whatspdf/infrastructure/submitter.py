"""Job submission against the processing backend."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import BinaryIO, Union

import httpx

from whatspdf.core.errors import GENERIC_PROCESSING_ERROR, SubmissionError
from whatspdf.core.schema import ProcessingOptions, SubmitResponse

logger = logging.getLogger(__name__)

Payload = Union[Path, bytes, BinaryIO]


class JobSubmitter:
    """Sends the export and its options; returns the session id."""

    def __init__(
        self,
        base_url: str,
        *,
        path: str = "/api/whatsapp/process",
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{path}"
        self._timeout = httpx.Timeout(timeout)
        self._client = http_client or httpx.AsyncClient()
        self._owns_client = http_client is None

    @staticmethod
    def _read_payload(file: Payload, filename: str | None) -> tuple[str, bytes]:
        if isinstance(file, Path):
            return filename or file.name, file.read_bytes()
        if isinstance(file, (bytes, bytearray)):
            return filename or "chat.zip", bytes(file)
        name = filename or Path(getattr(file, "name", "chat.zip")).name
        return name, file.read()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return GENERIC_PROCESSING_ERROR
        if isinstance(body, dict):
            message = body.get("message")
            if isinstance(message, str) and message.strip():
                return message
        return GENERIC_PROCESSING_ERROR

    async def submit(
        self,
        file: Payload,
        options: ProcessingOptions | None = None,
        *,
        filename: str | None = None,
    ) -> str:
        name, content = self._read_payload(file, filename)
        options = options or ProcessingOptions()
        try:
            response = await self._client.post(
                self._url,
                files={"file": (name, content, "application/zip")},
                data={"options": json.dumps(options.to_wire())},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("job submission failed: %s", exc)
            raise SubmissionError(GENERIC_PROCESSING_ERROR) from exc

        if response.is_error:
            message = self._error_message(response)
            logger.warning("job submission rejected", extra={"status_code": response.status_code, "reason": message})
            raise SubmissionError(message, status_code=response.status_code)

        try:
            accepted = SubmitResponse.model_validate(response.json())
        except ValueError as exc:
            raise SubmissionError(
                "Unexpected response from processing server", status_code=response.status_code
            ) from exc

        logger.info("job accepted", extra={"client_id": accepted.client_id, "upload": name})
        return accepted.client_id

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["JobSubmitter", "Payload"]
