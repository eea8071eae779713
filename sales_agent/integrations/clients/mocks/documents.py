"""
Mock document renderer and storage returning deterministic URLs.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from sales_agent.integrations.contracts.interfaces import DocumentRenderer, DocumentStorage

logger = logging.getLogger(__name__)


class MockDocumentRenderer(DocumentRenderer):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.rendered: List[Tuple[str, str]] = []

    async def render_to_document(self, html: str, name: str) -> str:
        if self.fail:
            raise RuntimeError("Document rendering unavailable")
        self.rendered.append((name, html))
        return f"https://documents.mock/tmp/{name}"


class MockDocumentStorage(DocumentStorage):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.stored: List[Tuple[str, str]] = []

    async def persist(self, temporary_url: str, target_key: str) -> str:
        if self.fail:
            raise RuntimeError("Document storage unavailable")
        self.stored.append((temporary_url, target_key))
        logger.info("[MockDocuments] stored %s", target_key)
        return f"https://storage.mock/{target_key}.pdf"
