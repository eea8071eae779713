"""
Quote ledger: creates quotes and moves them along draft -> quoted -> paid.

Transitions are monotonic. The paid transition is delegated to the
database as a conditional update so concurrent confirmations cannot both win.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sales_agent.chatbot.product_catalog import Product

logger = logging.getLogger(__name__)


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    QUOTED = "quoted"
    PAID = "paid"


_ALLOWED_TRANSITIONS = {
    (QuoteStatus.DRAFT, QuoteStatus.QUOTED),
    (QuoteStatus.QUOTED, QuoteStatus.PAID),
}


def can_transition(current: str, target: str) -> bool:
    try:
        return (QuoteStatus(current), QuoteStatus(target)) in _ALLOWED_TRANSITIONS
    except ValueError:
        return False


class QuoteLedger:
    def __init__(self, db: Any):
        self.db = db

    def create_quote(self, user_id: str, product: Product, premium: Any, facts: Dict[str, Any]) -> Any:
        """Record a priced quote. Quotes are created directly in `quoted`."""
        quote = self.db.create_quote(
            user_id=user_id,
            product_id=product.id,
            product_type=product.type,
            product_name=product.name,
            premium=premium,
            details=facts,
            status=QuoteStatus.QUOTED.value,
        )
        logger.info("[Ledger] quote %s created for user %s (%s, premium=%s)", quote.id, user_id, product.type, premium)
        return quote

    def get_quote(self, quote_id: str) -> Optional[Any]:
        if not quote_id:
            return None
        return self.db.get_quote(str(quote_id))

    def transition(self, quote_id: str, current: QuoteStatus, target: QuoteStatus, **fields: Any) -> bool:
        if not can_transition(current.value, target.value):
            raise ValueError(f"Illegal quote transition {current.value} -> {target.value}")
        return self.db.transition_quote_status(str(quote_id), current.value, target.value, **fields)

    def mark_paid(self, quote_id: str) -> bool:
        """quoted -> paid. False when another caller already moved the quote."""
        moved = self.transition(quote_id, QuoteStatus.QUOTED, QuoteStatus.PAID, paid_at=datetime.utcnow())
        if moved:
            logger.info("[Ledger] quote %s marked paid", quote_id)
        else:
            logger.info("[Ledger] quote %s was not in quoted state; paid transition skipped", quote_id)
        return moved

    def attach_checkout_url(self, quote_id: str, url: str) -> Optional[Any]:
        return self.db.update_quote(str(quote_id), checkout_url=url)

    def attach_certificate_url(self, quote_id: str, url: str) -> Optional[Any]:
        return self.db.update_quote(str(quote_id), certificate_url=url)
