"""
Scripted dialogue model.

Replays queued replies instead of calling a language model, and records the
history it was shown on each call.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional

from sales_agent.chatbot.turns import ModelReply, PlainReply, ToolInvocation, Turn
from sales_agent.integrations.contracts.interfaces import DialogueModel

DEFAULT_REPLY = "Hello! I can help you with motor, travel or health insurance. Which one are you interested in?"


class ScriptedDialogueModel(DialogueModel):
    def __init__(
        self,
        start_replies: Optional[Iterable[ModelReply]] = None,
        continue_replies: Optional[Iterable[PlainReply]] = None,
        default_reply: str = DEFAULT_REPLY,
    ) -> None:
        self.start_replies: Deque[ModelReply] = deque(start_replies or [])
        self.continue_replies: Deque[PlainReply] = deque(continue_replies or [])
        self.default_reply = default_reply
        self.start_calls: List[Dict[str, Any]] = []
        self.continue_calls: List[Dict[str, Any]] = []

    async def start_turn(self, history: List[Turn], message: str) -> ModelReply:
        self.start_calls.append({"history": list(history), "message": message})
        if self.start_replies:
            return self.start_replies.popleft()
        return PlainReply(self.default_reply)

    async def continue_turn(
        self,
        history: List[Turn],
        invocation: ToolInvocation,
        result: Dict[str, Any],
    ) -> PlainReply:
        self.continue_calls.append({"history": list(history), "invocation": invocation, "result": result})
        if self.continue_replies:
            return self.continue_replies.popleft()
        if "error" in result:
            return PlainReply(f"Sorry, something went wrong: {result['error']}")
        return PlainReply(self.default_reply)
