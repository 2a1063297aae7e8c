"""Artifact download and checkout helpers used after a session resolves."""
from __future__ import annotations

import logging
from pathlib import Path

import httpx

from whatspdf.core.errors import JobError

logger = logging.getLogger(__name__)


class ArtifactDownloader:
    """Fetches the document generated by the last successful job."""

    def __init__(
        self,
        base_url: str,
        *,
        path: str = "/api/whatsapp/download",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._url = f"{self._base_url}{path}"
        self._client = http_client or httpx.AsyncClient()
        self._owns_client = http_client is None

    async def download(self, target: Path, *, url: str | None = None) -> Path:
        """Stream the document into ``target``. ``url`` may be the artifact's own path."""
        source = self._url
        if url:
            source = url if url.startswith(("http://", "https://")) else f"{self._base_url}{url}"
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with self._client.stream("GET", source) as response:
                if response.is_error:
                    await response.aread()
                    raise JobError(_message(response, "Document not available"))
                with target.open("wb") as buffer:
                    async for chunk in response.aiter_bytes():
                        buffer.write(chunk)
        except httpx.HTTPError as exc:
            raise JobError("Document download failed") from exc
        logger.info("document saved", extra={"path": str(target)})
        return target

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class CheckoutClient:
    """Asks the billing service for a checkout link for a payment bundle."""

    def __init__(self, base_url: str, *, http_client: httpx.AsyncClient | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient()
        self._owns_client = http_client is None

    async def create_checkout(self, bundle_id: str) -> str:
        if not bundle_id:
            raise JobError("No payment bundle found")
        try:
            response = await self._client.post(f"{self._base_url}/api/checkout/{bundle_id}", json={})
        except httpx.HTTPError as exc:
            raise JobError("Error creating checkout session") from exc
        if response.is_error:
            raise JobError(_message(response, "Error creating checkout session"))
        try:
            checkout_url = response.json()["checkoutUrl"]
        except (ValueError, KeyError, TypeError) as exc:
            raise JobError("Error creating checkout session") from exc
        return str(checkout_url)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return fallback


__all__ = ["ArtifactDownloader", "CheckoutClient"]
