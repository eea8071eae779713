"""
Integrations layer.
This package contains all code used to communicate with external systems:
- Messaging channel (WhatsApp Cloud API)
- Payment gateway (hosted checkout + signed webhooks)
- Document rendering and storage

Key rule:
- Chatbot flows MUST NOT call external APIs directly.
- Flows call integration clients (under sales_agent/integrations/clients).
- MOCK clients are used in development; REAL_HTTP clients when credentials are available.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (sales_agent/chatbot/dependencies.py).
"""

from .contracts.interfaces import (
    DialogueModel,
    DocumentRenderer,
    DocumentStorage,
    MessagingChannel,
    PaymentGateway,
)
from .contracts.payments import (
    CheckoutError,
    CheckoutRequest,
    CheckoutSession,
    PaymentConfirmationEvent,
    PaymentProcessingError,
    PaymentVerificationError,
)

__all__ = [
    # interfaces
    "DialogueModel", "DocumentRenderer", "DocumentStorage", "MessagingChannel", "PaymentGateway",
    # payments
    "CheckoutError", "CheckoutRequest", "CheckoutSession", "PaymentConfirmationEvent",
    "PaymentProcessingError", "PaymentVerificationError",
]
