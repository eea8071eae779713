"""
Conversation store: user identity and conversation transcripts
"""

from dataclasses import dataclass
from typing import Any, List

from sales_agent.chatbot.turns import Turn, turns_from_dicts, turns_to_dicts


@dataclass
class ConversationState:
    user: Any
    conversation: Any
    history: List[Turn]

    @property
    def is_new(self) -> bool:
        """At most one exchange so far and no injected instruction yet."""
        return len(self.history) <= 2 and not any(t.is_instruction for t in self.history)


class ConversationStore:
    def __init__(self, postgres_db):
        self.db = postgres_db

    def load_or_create(self, external_user_id: str) -> ConversationState:
        """Get the (User, Conversation) pair for an external id, creating both lazily"""
        user = self.db.get_or_create_user(external_user_id)
        conversation = self.db.get_or_create_conversation(user.id)
        return ConversationState(
            user=user,
            conversation=conversation,
            history=turns_from_dicts(conversation.history),
        )

    def append_turns(self, state: ConversationState, turns: List[Turn]) -> ConversationState:
        """Persist new turns atomically and return the refreshed state"""
        if not turns:
            return state
        conversation = self.db.append_turns(state.conversation.id, turns_to_dicts(turns))
        return ConversationState(
            user=state.user,
            conversation=conversation,
            history=turns_from_dicts(conversation.history),
        )

    def history(self, external_user_id: str) -> List[Turn]:
        user = self.db.get_user_by_external_id(external_user_id)
        if not user:
            return []
        conversation = self.db.get_conversation_by_user(user.id)
        return turns_from_dicts(conversation.history) if conversation else []
