"""Error handling helpers for the message processing pipeline."""
from typing import Any, Dict
import logging

from sales_agent.chatbot.prompts import RETRY_MESSAGE

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception while processing message: %s", exc, exc_info=exc)
        return {
            "message": RETRY_MESSAGE,
            "fallback": True,
            "metadata": {"error": type(exc).__name__, "context": context or {}},
        }
