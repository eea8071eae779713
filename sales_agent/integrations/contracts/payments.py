"""
Payment contracts.

Request/response structures for the hosted-checkout gateway, and webhook
verification shared by the mock and real clients. Signatures are checked by
the Stripe SDK (`stripe.Webhook.construct_event`).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import stripe

CHECKOUT_COMPLETED = "checkout.session.completed"
QUOTE_METADATA_KEY = "quoteId"


class PaymentVerificationError(Exception):
    """Webhook payload could not be authenticated or parsed."""


class PaymentProcessingError(Exception):
    """A verified event could not be processed; the gateway should retry."""


class CheckoutError(Exception):
    """The gateway refused or failed to create a checkout."""


@dataclass
class CheckoutRequest:
    quote_id: str
    amount: float
    customer_name: str
    currency: str
    description: str = ""
    customer_email: Optional[str] = None


@dataclass
class CheckoutSession:
    session_id: str
    url: str


@dataclass
class PaymentConfirmationEvent:
    """Payload received from a gateway webhook callback."""
    event_id: str
    event_type: str
    quote_id: Optional[str] = None
    session_id: Optional[str] = None
    amount_total: Optional[float] = None
    raw_payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_checkout_completed(self) -> bool:
        return self.event_type == CHECKOUT_COMPLETED


# ---------------------------------------------------------------------------
# Webhook verification
# ---------------------------------------------------------------------------

DEFAULT_TOLERANCE_SECONDS = 300


def verify_and_parse(
    payload: bytes,
    header: str,
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> PaymentConfirmationEvent:
    """
    Check the `Stripe-Signature` header with the Stripe SDK, then parse the body.

    Raises:
        PaymentVerificationError: missing secret/header, bad or stale signature, invalid body
    """
    if not secret:
        raise PaymentVerificationError("Webhook secret is not configured")
    if not header:
        raise PaymentVerificationError("Missing signature header")

    try:
        stripe.Webhook.construct_event(payload, header, secret, tolerance=tolerance_seconds)
    except stripe.SignatureVerificationError as e:
        raise PaymentVerificationError(f"Signature verification failed: {e}") from e
    except ValueError as e:
        raise PaymentVerificationError(f"Invalid event payload: {e}") from e
    return parse_event(payload)


def parse_event(payload: bytes) -> PaymentConfirmationEvent:
    """Parse a gateway event body (`{"id", "type", "data": {"object": {...}}}`)."""
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise PaymentVerificationError(f"Invalid event payload: {e}")
    if not isinstance(data, dict) or "type" not in data:
        raise PaymentVerificationError("Event payload has no type")

    obj = (data.get("data") or {}).get("object") or {}
    metadata = obj.get("metadata") or {}
    return PaymentConfirmationEvent(
        event_id=str(data.get("id", "")),
        event_type=str(data["type"]),
        quote_id=metadata.get(QUOTE_METADATA_KEY) or None,
        session_id=obj.get("id"),
        amount_total=obj.get("amount_total"),
        raw_payload=data,
    )
