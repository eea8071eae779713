"""
Mock Payments Client.

Purpose:
- Fake hosted-checkout gateway used for development/testing
- Does NOT make any network calls
- Verifies webhooks through the Stripe SDK like the real client, and can sign
  test events with a Stripe-format header so they exercise that path

Swap:
Replace with clients/real_http/payments.py when INTEGRATIONS_MODE=real.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from sales_agent.integrations.contracts.interfaces import PaymentGateway
from sales_agent.integrations.contracts.payments import (
    CHECKOUT_COMPLETED,
    QUOTE_METADATA_KEY,
    CheckoutError,
    CheckoutRequest,
    CheckoutSession,
    PaymentConfirmationEvent,
    verify_and_parse,
)

logger = logging.getLogger(__name__)


def stripe_signature_header(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """`t=<ts>,v1=<hmac>` header as Stripe sends it, for signing test events."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    return f"t={ts},v1={hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()}"


DEFAULT_MOCK_WEBHOOK_SECRET = "whsec_mock"


class MockPaymentsClient(PaymentGateway):
    def __init__(self, webhook_secret: str = DEFAULT_MOCK_WEBHOOK_SECRET, fail_checkout: bool = False) -> None:
        self.webhook_secret = webhook_secret or DEFAULT_MOCK_WEBHOOK_SECRET
        self.fail_checkout = fail_checkout
        self.checkouts: List[CheckoutRequest] = []

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        if self.fail_checkout:
            raise CheckoutError("Could not create payment session.")
        self.checkouts.append(request)
        session_id = f"cs_mock_{uuid.uuid4().hex[:16]}"
        logger.info("[MockPayments] checkout %s for quote %s", session_id, request.quote_id)
        return CheckoutSession(session_id=session_id, url=f"https://checkout.mock/pay/{session_id}")

    def verify_and_parse_event(self, raw_payload: bytes, signature: str) -> PaymentConfirmationEvent:
        return verify_and_parse(raw_payload, signature, self.webhook_secret)

    # --- Test helpers ---------------------------------------------------------

    def build_completed_event(self, quote_id: Optional[str], event_type: str = CHECKOUT_COMPLETED) -> bytes:
        metadata: Dict[str, Any] = {QUOTE_METADATA_KEY: quote_id} if quote_id else {}
        event = {
            "id": f"evt_mock_{uuid.uuid4().hex[:12]}",
            "type": event_type,
            "data": {"object": {"id": f"cs_mock_{uuid.uuid4().hex[:8]}", "metadata": metadata}},
        }
        return json.dumps(event).encode("utf-8")

    def sign(self, payload: bytes, timestamp: Optional[int] = None) -> str:
        return stripe_signature_header(payload, self.webhook_secret, timestamp)
