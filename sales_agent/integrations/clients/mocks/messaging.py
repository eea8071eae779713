"""
Mock messaging channel.

Does NOT make any network calls; records every outbound message so flows can
be exercised end-to-end in development and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sales_agent.integrations.contracts.interfaces import MessagingChannel

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    user_id: str
    text: str
    document_url: Optional[str] = None
    filename: Optional[str] = None

    @property
    def is_document(self) -> bool:
        return self.document_url is not None


class MockMessagingChannel(MessagingChannel):
    def __init__(self) -> None:
        self.sent: List[SentMessage] = []

    async def send(self, user_id: str, text: str) -> None:
        logger.info("[MockMessaging] to=%s text=%s", user_id, text[:120])
        self.sent.append(SentMessage(user_id=user_id, text=text))

    async def send_document(self, user_id: str, url: str, caption: str, filename: str) -> None:
        logger.info("[MockMessaging] to=%s document=%s", user_id, filename)
        self.sent.append(SentMessage(user_id=user_id, text=caption, document_url=url, filename=filename))

    def texts_to(self, user_id: str) -> List[str]:
        return [m.text for m in self.sent if m.user_id == user_id and not m.is_document]

    def documents_to(self, user_id: str) -> List[SentMessage]:
        return [m for m in self.sent if m.user_id == user_id and m.is_document]
