from abc import ABC, abstractmethod
from typing import Any, Dict, List

from sales_agent.chatbot.turns import ModelReply, PlainReply, ToolInvocation, Turn
from .payments import CheckoutRequest, CheckoutSession, PaymentConfirmationEvent


# ---------------------------------------------------------------------------
# Abstract collaborator interfaces
# ---------------------------------------------------------------------------

class MessagingChannel(ABC):
    """Outbound messaging to a user identified by their channel address."""

    @abstractmethod
    async def send(self, user_id: str, text: str) -> None:
        """Send a plain text message."""

    @abstractmethod
    async def send_document(self, user_id: str, url: str, caption: str, filename: str) -> None:
        """Send a document by public URL."""


class DialogueModel(ABC):
    """Text / tool-call generation service."""

    @abstractmethod
    async def start_turn(self, history: List[Turn], message: str) -> ModelReply:
        """Answer a new user message: either a plain reply or one tool invocation."""

    @abstractmethod
    async def continue_turn(
        self,
        history: List[Turn],
        invocation: ToolInvocation,
        result: Dict[str, Any],
    ) -> PlainReply:
        """Produce the final reply after a tool result. `history` already contains the user turn and the call."""


class PaymentGateway(ABC):

    @abstractmethod
    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        """Create a hosted checkout scoped to one quote."""

    @abstractmethod
    def verify_and_parse_event(self, raw_payload: bytes, signature: str) -> PaymentConfirmationEvent:
        """Verify the webhook signature and parse the event. Raises PaymentVerificationError."""


class DocumentRenderer(ABC):

    @abstractmethod
    async def render_to_document(self, html: str, name: str) -> str:
        """Render HTML to a PDF; returns a temporary URL."""


class DocumentStorage(ABC):

    @abstractmethod
    async def persist(self, temporary_url: str, target_key: str) -> str:
        """Copy a temporary file into permanent storage under `target_key`; returns the permanent URL."""
