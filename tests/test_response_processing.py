from sales_agent.chatbot.prompts import PREMIUM_DISCLAIMER, REPHRASE_MESSAGE
from sales_agent.response_processor import ResponseProcessor
from sales_agent.utils.config_loader import AgentConfig


def test_premium_reply_gets_disclaimer():
    out = ResponseProcessor().process_reply("Great news! Your premium is 94,000 RWF.")
    assert out == f"Great news! Your premium is 94,000 RWF.\n\n{PREMIUM_DISCLAIMER}"


def test_refusal_uses_insurer_name():
    out = ResponseProcessor(AgentConfig(insurer_name="Acme Assurance")).process_reply("Sorry, I CANNOT HELP with that.")
    assert "Acme Assurance" in out
    assert "motor, travel, and health" in out


def test_empty_reply_asks_to_rephrase():
    assert ResponseProcessor().process_reply("   ") == REPHRASE_MESSAGE
    assert ResponseProcessor().process_reply(None) == REPHRASE_MESSAGE


def test_plain_reply_is_trimmed():
    assert ResponseProcessor().process_reply("  What is the driver's age?\n") == "What is the driver's age?"

