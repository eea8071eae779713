"""
Document rendering (PDF.co HTML -> PDF) and permanent storage (Cloudinary raw upload).
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Optional

import httpx

from sales_agent.integrations.contracts.interfaces import DocumentRenderer, DocumentStorage
from sales_agent.utils.config_loader import DocumentsConfig

logger = logging.getLogger(__name__)


class DocumentServiceError(Exception):
    pass


class PdfCoRenderer(DocumentRenderer):
    def __init__(
        self,
        config: DocumentsConfig,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def render_to_document(self, html: str, name: str) -> str:
        headers = {"x-api-key": self.config.pdf_api_key, "Content-Type": "application/json"}
        payload = {"html": html, "inline": False, "name": name}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.config.pdf_api_url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise DocumentServiceError(f"PDF rendering request failed: {e}") from e

        if data.get("error") or not data.get("url"):
            raise DocumentServiceError(f"PDF rendering failed: {data.get('message', 'no url returned')}")
        logger.info("[Documents] rendered %s", name)
        return data["url"]


class CloudinaryStorage(DocumentStorage):
    """Signed raw upload. The public id is the target key, so re-uploads overwrite."""

    def __init__(
        self,
        config: DocumentsConfig,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.upload_url = f"https://api.cloudinary.com/v1_1/{config.cloudinary_cloud_name}/raw/upload"
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _sign(self, params: dict) -> str:
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1((to_sign + self.config.cloudinary_api_secret).encode("utf-8")).hexdigest()

    async def persist(self, temporary_url: str, target_key: str) -> str:
        params = {"overwrite": "true", "public_id": target_key, "timestamp": str(int(time.time()))}
        form = {**params, "api_key": self.config.cloudinary_api_key, "signature": self._sign(params)}
        filename = target_key.rsplit("/", 1)[-1] + ".pdf"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                download = await client.get(temporary_url)
                download.raise_for_status()
                response = await client.post(
                    self.upload_url,
                    data=form,
                    files={"file": (filename, download.content, "application/pdf")},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise DocumentServiceError(f"Storage upload failed: {e}") from e

        if not data.get("secure_url"):
            raise DocumentServiceError("Storage response did not include a URL")
        logger.info("[Documents] stored %s", target_key)
        return data["secure_url"]
