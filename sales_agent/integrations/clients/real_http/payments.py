"""
Real Payments Client.

Hosted checkout through the Stripe SDK. Used when INTEGRATIONS_MODE=real.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict

import stripe

from sales_agent.integrations.contracts.interfaces import PaymentGateway
from sales_agent.integrations.contracts.payments import (
    QUOTE_METADATA_KEY,
    CheckoutError,
    CheckoutRequest,
    CheckoutSession,
    PaymentConfirmationEvent,
    verify_and_parse,
)
from sales_agent.utils.config_loader import PaymentsConfig

logger = logging.getLogger(__name__)


def unit_amount(amount: Any) -> int:
    """Whole currency units (zero-decimal currency), rounded half-up like premiums."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RealPaymentsClient(PaymentGateway):
    def __init__(self, config: PaymentsConfig) -> None:
        self.config = config

    def _session_params(self, request: CheckoutRequest) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": (request.currency or self.config.currency).lower(),
                        "product_data": {
                            "name": self.config.product_name,
                            "description": request.description or f"Payment for Insurance Quote #{request.quote_id}",
                        },
                        "unit_amount": unit_amount(request.amount),
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": self.config.success_url,
            "cancel_url": self.config.cancel_url,
            "metadata": {QUOTE_METADATA_KEY: request.quote_id},
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        return params

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        if not self.config.secret_key:
            raise CheckoutError("STRIPE_SECRET_KEY is not configured.")

        logger.info("[Payment] creating checkout for quote %s (amount=%s)", request.quote_id, request.amount)
        try:
            # stripe's client is blocking; run it off the event loop
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.config.secret_key,
                **self._session_params(request),
            )
        except stripe.StripeError as e:
            logger.error("[Payment] checkout creation failed for quote %s: %s", request.quote_id, e)
            raise CheckoutError("Could not create payment session.") from e

        if not getattr(session, "url", None):
            raise CheckoutError("Gateway response did not include a checkout URL.")
        logger.info("[Payment] checkout session %s created", session.id)
        return CheckoutSession(session_id=str(session.id), url=session.url)

    def verify_and_parse_event(self, raw_payload: bytes, signature: str) -> PaymentConfirmationEvent:
        return verify_and_parse(
            raw_payload,
            signature,
            self.config.webhook_secret,
            tolerance_seconds=self.config.signature_tolerance_seconds,
        )
