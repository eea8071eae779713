"""
Payment confirmation flow - verified gateway event -> quote paid -> fulfillment
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sales_agent.chatbot.flows.fulfillment import FulfillmentPipeline
from sales_agent.chatbot.prompts import PAYMENT_NOTE_TEMPLATE, payment_confirmation_message
from sales_agent.chatbot.quote_ledger import QuoteLedger, QuoteStatus
from sales_agent.chatbot.user_locks import UserLockRegistry
from sales_agent.integrations.contracts.interfaces import MessagingChannel, PaymentGateway
from sales_agent.integrations.contracts.payments import PaymentProcessingError

logger = logging.getLogger(__name__)


@dataclass
class PaymentEventResult:
    status: str  # processed | duplicate | ignored
    quote_id: Optional[str] = None
    fulfilled: Optional[bool] = None


class PaymentConfirmationFlow:
    def __init__(
        self,
        payments: PaymentGateway,
        ledger: QuoteLedger,
        db: Any,
        messaging: MessagingChannel,
        orchestrator: Any,
        fulfillment: FulfillmentPipeline,
        locks: UserLockRegistry,
        currency: str = "RWF",
    ):
        self.payments = payments
        self.ledger = ledger
        self.db = db
        self.messaging = messaging
        self.orchestrator = orchestrator
        self.fulfillment = fulfillment
        self.locks = locks
        self.currency = currency

    async def handle_event(self, raw_payload: bytes, signature: str) -> PaymentEventResult:
        """
        Process one webhook delivery.

        Raises:
            PaymentVerificationError: signature or payload rejected; nothing changed
            PaymentProcessingError: storage failed before the paid transition; safe to retry
        """
        event = self.payments.verify_and_parse_event(raw_payload, signature)
        logger.info("[Payment] webhook received: %s (%s)", event.event_type, event.event_id)

        if not event.is_checkout_completed:
            return PaymentEventResult(status="ignored")

        quote_id = event.quote_id
        if not quote_id:
            logger.error("[Payment] checkout completed without a quote id in metadata (event %s)", event.event_id)
            return PaymentEventResult(status="ignored")

        try:
            quote = self.ledger.get_quote(quote_id)
            user = self.db.get_user_by_id(quote.user_id) if quote else None
            if quote is None or user is None:
                logger.warning("[Payment] quote %s or its user not found; acknowledging", quote_id)
                return PaymentEventResult(status="ignored", quote_id=quote_id)
            if quote.status == QuoteStatus.PAID.value:
                logger.info("[Payment] quote %s already paid; acknowledging", quote_id)
                return PaymentEventResult(status="duplicate", quote_id=quote_id)

            moved = self.ledger.mark_paid(quote_id)
        except Exception as e:
            logger.exception("[Payment] processing error for quote %s", quote_id)
            raise PaymentProcessingError(f"Processing error for quote {quote_id}.") from e

        if not moved:
            logger.info("[Payment] quote %s was moved by a concurrent delivery; acknowledging", quote_id)
            return PaymentEventResult(status="duplicate", quote_id=quote_id)

        # Runs exactly once per quote from here on
        message = payment_confirmation_message(user.full_name or "there", quote.premium, self.currency, quote.id)
        try:
            await self.messaging.send(user.external_id, message)
        except Exception:
            logger.exception("[Payment] confirmation message failed for quote %s", quote_id)

        # Serialized with inbound turns for this user
        async with self.locks.hold(user.external_id):
            await self.orchestrator.add_system_note(user.external_id, PAYMENT_NOTE_TEMPLATE.format(quote_id=quote.id))

        result = await self.fulfillment.fulfill(quote, user)
        return PaymentEventResult(status="processed", quote_id=quote_id, fulfilled=result.success)
