"""Turn mapping for the Gemini dialogue model (no network)."""

import pytest

from sales_agent.chatbot.turns import (
    ToolInvocation,
    agent_turn,
    instruction_turn,
    tool_call_turn,
    tool_result_turn,
    user_turn,
)
from sales_agent.llm.generate import GeminiDialogueModel, turn_to_content
from sales_agent.utils.config_loader import GenerationConfig


def test_user_and_agent_roles():
    assert turn_to_content(user_turn("hi")).role == "user"
    content = turn_to_content(agent_turn("Hello!"))
    assert content.role == "model"
    assert content.parts[0].text == "Hello!"


def test_instruction_is_sent_as_model_text():
    content = turn_to_content(instruction_turn("collect motor details"))
    assert content.role == "model"
    assert content.parts[0].text.startswith("(System Instruction: ")


def test_tool_turns_map_to_function_parts():
    invocation = ToolInvocation("calculate_premium", {"insuranceType": "motor", "details": {"driverAge": 22}})

    call = turn_to_content(tool_call_turn(invocation))
    assert call.role == "model"
    assert call.parts[0].function_call.name == "calculate_premium"
    assert call.parts[0].function_call.args["insuranceType"] == "motor"

    result = turn_to_content(tool_result_turn(invocation, {"premium": 94000}))
    assert result.role == "user"
    assert result.parts[0].function_response.name == "calculate_premium"
    assert result.parts[0].function_response.response == {"premium": 94000}


def test_missing_api_key_fails_fast(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        GeminiDialogueModel(GenerationConfig())
