"""
Conversation turns and dialogue-model replies.

A conversation history is an ordered list of `Turn`s. The dialogue model
answers a turn with either a `PlainReply` or a single `ToolInvocation`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

# User-supplied answers are strings, numbers or booleans.
FactValue = Union[str, int, float, bool]
FactMap = Dict[str, FactValue]

SYSTEM_NOTE_PREFIX = "(System Note: "
SYSTEM_INSTRUCTION_PREFIX = "(System Instruction: "


class Role(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM_NOTE = "system_note"


@dataclass(frozen=True)
class ToolInvocation:
    """A structured action requested by the dialogue model."""

    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlainReply:
    text: str


ModelReply = Union[PlainReply, ToolInvocation]


@dataclass
class Turn:
    role: Role
    text: str = ""
    tool_call: Optional[ToolInvocation] = None
    tool_result: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_instruction(self) -> bool:
        return self.role == Role.SYSTEM_NOTE and self.text.startswith(SYSTEM_INSTRUCTION_PREFIX)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "role": self.role.value,
            "text": self.text,
            "created_at": self.created_at.isoformat(),
        }
        if self.tool_call is not None:
            data["tool_call"] = {"name": self.tool_call.name, "args": dict(self.tool_call.args)}
        if self.tool_result is not None:
            data["tool_result"] = dict(self.tool_result)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        call = data.get("tool_call")
        created_at = data.get("created_at")
        return cls(
            role=Role(data.get("role", Role.USER.value)),
            text=data.get("text") or "",
            tool_call=ToolInvocation(name=call["name"], args=call.get("args") or {}) if call else None,
            tool_result=data.get("tool_result"),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.utcnow(),
        )


def user_turn(text: str) -> Turn:
    return Turn(role=Role.USER, text=text)


def agent_turn(text: str) -> Turn:
    return Turn(role=Role.AGENT, text=text)


def tool_call_turn(invocation: ToolInvocation) -> Turn:
    return Turn(role=Role.AGENT, tool_call=invocation)


def tool_result_turn(invocation: ToolInvocation, result: Dict[str, Any]) -> Turn:
    """The result is stored as `{"name": ..., "response": ...}` so it can be replayed to the model."""
    return Turn(role=Role.AGENT, tool_result={"name": invocation.name, "response": result})


def system_note_turn(text: str) -> Turn:
    return Turn(role=Role.SYSTEM_NOTE, text=f"{SYSTEM_NOTE_PREFIX}{text})")


def instruction_turn(text: str) -> Turn:
    return Turn(role=Role.SYSTEM_NOTE, text=f"{SYSTEM_INSTRUCTION_PREFIX}{text})")


def turns_to_dicts(turns: List[Turn]) -> List[Dict[str, Any]]:
    return [t.to_dict() for t in turns]


def turns_from_dicts(items: List[Dict[str, Any]]) -> List[Turn]:
    return [Turn.from_dict(item) for item in items or []]
