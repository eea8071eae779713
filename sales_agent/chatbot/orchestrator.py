"""
Conversation orchestrator - one inbound message, one processing cycle.

Cycle:
1. Load or create the user's conversation.
2. On a new conversation whose first message mentions a product, inject a
   one-time instruction listing that product's required inputs.
3. Ask the dialogue model for a reply. A tool invocation is dispatched and
   its result fed back for the final reply.
4. Persist the cycle's turns in one write, then post-process and send the reply.

Callers must serialize cycles per user (see UserLockRegistry).
"""

import logging
from typing import Any, Dict, List, Optional

from sales_agent.chatbot.product_catalog import ProductCatalog
from sales_agent.chatbot.prompts import product_instruction
from sales_agent.chatbot.state_manager import ConversationState, ConversationStore
from sales_agent.chatbot.tool_dispatcher import ToolDispatcher
from sales_agent.chatbot.turns import (
    PlainReply,
    ToolInvocation,
    Turn,
    agent_turn,
    instruction_turn,
    system_note_turn,
    tool_call_turn,
    tool_result_turn,
    user_turn,
)
from sales_agent.error_handler import ErrorHandler
from sales_agent.integrations.contracts.interfaces import DialogueModel, MessagingChannel
from sales_agent.response_processor import ResponseProcessor

logger = logging.getLogger(__name__)


class ConversationOrchestrator:
    def __init__(
        self,
        store: ConversationStore,
        catalog: ProductCatalog,
        dispatcher: ToolDispatcher,
        model: DialogueModel,
        messaging: MessagingChannel,
        response_processor: Optional[ResponseProcessor] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.dispatcher = dispatcher
        self.model = model
        self.messaging = messaging
        self.response_processor = response_processor or ResponseProcessor()
        self.error_handler = error_handler or ErrorHandler()

    async def process_message(self, external_user_id: str, text: str) -> str:
        """Run one cycle and return the text that was sent to the user."""
        try:
            reply = await self._run_cycle(external_user_id, text)
            await self.messaging.send(external_user_id, reply)
            return reply
        except Exception as e:
            payload = self.error_handler.handle_exception(e, context={"user": external_user_id})
            await self._send_safely(external_user_id, payload["message"])
            return payload["message"]

    async def _run_cycle(self, external_user_id: str, text: str) -> str:
        state = self.store.load_or_create(external_user_id)
        logger.info("[Orchestrator] message from %s (history=%d)", external_user_id, len(state.history))

        new_turns: List[Turn] = []
        instruction = self._product_instruction(state, text)
        if instruction is not None:
            new_turns.append(instruction)
        new_turns.append(user_turn(text))

        reply = await self.model.start_turn(state.history + new_turns[:-1], text)

        if isinstance(reply, ToolInvocation):
            final = await self._run_tool(state, new_turns, reply)
        elif isinstance(reply, PlainReply):
            final = reply
        else:
            raise TypeError(f"Unexpected model reply type: {type(reply).__name__}")

        new_turns.append(agent_turn(final.text))
        self.store.append_turns(state, new_turns)

        return self.response_processor.process_reply(final.text)

    async def _run_tool(self, state: ConversationState, new_turns: List[Turn], invocation: ToolInvocation) -> PlainReply:
        logger.info("[Orchestrator] model requested tool %s", invocation.name)
        result: Dict[str, Any] = await self.dispatcher.dispatch(invocation, state.user)
        new_turns.append(tool_call_turn(invocation))
        final = await self.model.continue_turn(state.history + new_turns, invocation, result)
        new_turns.append(tool_result_turn(invocation, result))
        return final

    def _product_instruction(self, state: ConversationState, text: str) -> Optional[Turn]:
        if not state.is_new:
            return None
        product = self.catalog.match_product(text)
        if product is None:
            return None
        logger.info("[Orchestrator] injecting %s collection instruction", product.type)
        return instruction_turn(
            product_instruction(product.name, product.type, self.catalog.describe_required_inputs(product))
        )

    async def add_system_note(self, external_user_id: str, text: str) -> None:
        """Record an out-of-band event (e.g. a payment) in the conversation. Never raises."""
        try:
            state = self.store.load_or_create(external_user_id)
            self.store.append_turns(state, [system_note_turn(text)])
            logger.info("[Orchestrator] system note added for %s", external_user_id)
        except Exception:
            logger.exception("[Orchestrator] failed to add system note for %s", external_user_id)

    async def _send_safely(self, external_user_id: str, text: str) -> None:
        try:
            await self.messaging.send(external_user_id, text)
        except Exception:
            logger.exception("[Orchestrator] failed to send message to %s", external_user_id)
