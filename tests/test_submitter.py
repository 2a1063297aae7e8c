from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from whatspdf.core.errors import SubmissionError
from whatspdf.core.schema import ProcessingOptions
from whatspdf.infrastructure import JobSubmitter


def _submit(handler, payload, options=None, **kwargs):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            submitter = JobSubmitter("http://backend.test", http_client=http_client)
            return await submitter.submit(payload, options, **kwargs)

    return asyncio.run(run())


def test_submit_posts_file_and_options(tmp_path):
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["content_type"] = request.headers["content-type"]
        captured["body"] = request.read()
        return httpx.Response(200, json={"clientId": "abc-123"})

    export = tmp_path / "chat.zip"
    export.write_bytes(b"PK\x03\x04fake")
    options = ProcessingOptions(include_images=True, include_voice_messages=False)

    client_id = _submit(handler, export, options)

    assert client_id == "abc-123"
    assert captured["method"] == "POST"
    assert captured["url"] == "http://backend.test/api/whatsapp/process"
    assert str(captured["content_type"]).startswith("multipart/form-data")
    body = captured["body"]
    assert b'name="file"; filename="chat.zip"' in body
    assert b"PK\x03\x04fake" in body
    assert b'name="options"' in body
    encoded_options = json.dumps(options.to_wire()).encode()
    assert encoded_options in body
    assert b'"includeImages": true' in body


def test_submit_accepts_raw_bytes_with_filename():
    def handler(request: httpx.Request) -> httpx.Response:
        assert b'filename="export.zip"' in request.read()
        return httpx.Response(200, json={"clientId": "id-1"})

    assert _submit(handler, b"zipbytes", filename="export.zip") == "id-1"


def test_server_message_is_surfaced():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "bad file"})

    with pytest.raises(SubmissionError) as excinfo:
        _submit(handler, b"zip")

    assert excinfo.value.message == "bad file"
    assert excinfo.value.status_code == 500


def test_generic_message_when_error_body_is_not_json():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    with pytest.raises(SubmissionError) as excinfo:
        _submit(handler, b"zip")

    assert excinfo.value.message == "Error processing file"
    assert excinfo.value.status_code == 502


def test_network_error_becomes_submission_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SubmissionError) as excinfo:
        _submit(handler, b"zip")

    assert excinfo.value.message == "Error processing file"
    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_success_without_client_id_is_rejected():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    with pytest.raises(SubmissionError):
        _submit(handler, b"zip")
