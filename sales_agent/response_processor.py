"""Reply post-processing.

Applies the fixed business rules to the dialogue model's final text before it
is sent on the messaging channel.
"""
from typing import Optional
import logging

from sales_agent.chatbot.prompts import PREMIUM_DISCLAIMER, REPHRASE_MESSAGE, refusal_message
from sales_agent.utils.config_loader import AgentConfig

logger = logging.getLogger(__name__)


class ResponseProcessor:
    """Normalize the final reply.

    - Empty replies become a rephrase prompt.
    - Replies signalling an out-of-scope request are replaced by the refusal template.
    - Replies quoting a premium get the underwriting disclaimer appended.
    """

    REFUSAL_MARKER = "i cannot help"
    PREMIUM_MARKER = "premium is"

    def __init__(self, agent_config: Optional[AgentConfig] = None):
        self.agent_config = agent_config or AgentConfig()

    def process_reply(self, text: str) -> str:
        message = (text or "").strip()
        if not message:
            logger.warning("Empty model reply; asking user to rephrase")
            return REPHRASE_MESSAGE

        lowered = message.lower()
        if self.REFUSAL_MARKER in lowered:
            logger.info("Out-of-scope reply replaced with refusal template")
            return refusal_message(self.agent_config)

        if self.PREMIUM_MARKER in lowered:
            return f"{message}\n\n{PREMIUM_DISCLAIMER}"

        return message
