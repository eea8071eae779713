"""
WhatsApp Cloud API messaging client.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from sales_agent.integrations.contracts.interfaces import MessagingChannel
from sales_agent.utils.config_loader import WhatsAppConfig

logger = logging.getLogger(__name__)


class MessagingError(Exception):
    pass


class WhatsAppClient(MessagingChannel):
    def __init__(
        self,
        config: WhatsAppConfig,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.url = f"{config.api_base_url.rstrip('/')}/{config.phone_number_id}/messages"
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def _post(self, to: str, payload: Dict[str, Any]) -> None:
        headers = {
            "Authorization": f"Bearer {self.config.token}",
            "Content-Type": "application/json",
        }
        body = {"messaging_product": "whatsapp", "to": to, **payload}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.url, json=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:300]
            raise MessagingError(f"WhatsApp API returned {e.response.status_code}: {detail}") from e
        except httpx.HTTPError as e:
            raise MessagingError(f"WhatsApp API request failed: {e}") from e

    async def send(self, user_id: str, text: str) -> None:
        await self._post(user_id, {"type": "text", "text": {"body": text}})
        logger.info("[WhatsApp] message sent to %s", user_id)

    async def send_document(self, user_id: str, url: str, caption: str, filename: str) -> None:
        await self._post(
            user_id,
            {"type": "document", "document": {"link": url, "caption": caption, "filename": filename}},
        )
        logger.info("[WhatsApp] document %s sent to %s", filename, user_id)
