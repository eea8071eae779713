"""
Persona, fixed user-facing messages and tool declarations for the dialogue model.
"""

from typing import Any, Dict, List

from sales_agent.utils.config_loader import AgentConfig

SYSTEM_INSTRUCTION_TEMPLATE = """
You are {agent_name}, an expert, friendly and trustworthy insurance agent for "{insurer_name}".
Your goal is to help customers get Motor, Travel and Health insurance policies.
You communicate in a polite, helpful and professional tone.
You must guide the user step by step. NEVER ask for all information at once.
Your currency is always {currency}.

You have access to tools. When you have collected enough information to use a tool, you must use it.

Your primary tasks are:
1. Greet the user and ask which type of insurance they need.
2. Collect the information required for that insurance type one piece at a time.
3. Once you have enough information, call the 'calculate_premium' tool.
4. Present the quote clearly, e.g. "Your premium is 94,000 {currency}".
5. If the user accepts the quote, ask for their full name if you do not have it and call
   the 'generate_payment_link' tool, then share the link.
6. If a request is unrelated to insurance, reply that you cannot help with it.
""".strip()

REFUSAL_TEMPLATE = (
    "I can only assist with inquiries related to insurance products offered by {insurer_name}, "
    "including motor, travel, and health policies. Please let me know how I can help you with one of those today!"
)

PREMIUM_DISCLAIMER = "*Note: This quote is based on the details you provided and our standard underwriting rules.*"

RETRY_MESSAGE = "I'm sorry, I encountered an unexpected error. Could we please try that again?"

REPHRASE_MESSAGE = "I'm sorry, I didn't quite get that. Could you rephrase your question?"

DEGRADED_FULFILLMENT_MESSAGE = (
    "We've confirmed your payment, but there was an issue generating your certificate. "
    "Our team has been notified and will send it to you manually shortly."
)

CERTIFICATE_CAPTION = "Here is your official Insurance Certificate."

PRODUCT_INSTRUCTION_TEMPLATE = (
    "The user wants {product_name} ({product_type} insurance). Your goal is to collect the following pieces "
    "of information, asking one question at a time: {required_inputs}. Once you have all required information, "
    "call the 'calculate_premium' tool with insuranceType '{product_type}'."
)

PAYMENT_NOTE_TEMPLATE = "Payment for quote {quote_id} was successfully processed. Certificate generation initiated."


def build_system_instruction(agent: AgentConfig) -> str:
    return SYSTEM_INSTRUCTION_TEMPLATE.format(
        agent_name=agent.agent_name,
        insurer_name=agent.insurer_name,
        currency=agent.currency,
    )


def refusal_message(agent: AgentConfig) -> str:
    return REFUSAL_TEMPLATE.format(insurer_name=agent.insurer_name)


def product_instruction(product_name: str, product_type: str, required_inputs: str) -> str:
    return PRODUCT_INSTRUCTION_TEMPLATE.format(
        product_name=product_name,
        product_type=product_type,
        required_inputs=required_inputs,
    )


def payment_confirmation_message(customer_name: str, premium: Any, currency: str, quote_id: str) -> str:
    return (
        f"Thank you, {customer_name}! Your payment of {format_amount(premium)} {currency} for quote "
        f"#{quote_id[:8]} was successful. We are now preparing your insurance certificate."
    )


def format_amount(value: Any) -> str:
    """94000.0 -> '94,000'"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.2f}"


def tool_declarations(product_types: List[str]) -> List[Dict[str, Any]]:
    """JSON-schema declarations of the two tools the model may call."""
    type_enum = sorted(product_types) or ["motor", "travel", "health"]
    return [
        {
            "name": "calculate_premium",
            "description": "Calculates the insurance premium based on the type of insurance and user-provided details.",
            "parameters": {
                "type": "object",
                "properties": {
                    "insuranceType": {
                        "type": "string",
                        "enum": type_enum,
                        "description": "The type of insurance.",
                    },
                    "details": {
                        "type": "object",
                        "description": "All details collected from the user, keyed by the requested field keys.",
                        "additionalProperties": True,
                    },
                },
                "required": ["insuranceType", "details"],
            },
        },
        {
            "name": "generate_payment_link",
            "description": (
                "Generates a payment link when the user agrees to a quote. "
                "Creates a quote record before generating the link."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "insuranceType": {
                        "type": "string",
                        "enum": type_enum,
                        "description": "The type of insurance being quoted, e.g. 'motor'.",
                    },
                    "premium": {
                        "type": "number",
                        "description": "The premium amount to be charged.",
                    },
                    "customerName": {
                        "type": "string",
                        "description": "The full name of the customer.",
                    },
                    "details": {
                        "type": "object",
                        "description": "The same details object that was used for the premium calculation.",
                        "additionalProperties": True,
                    },
                },
                "required": ["insuranceType", "premium", "customerName", "details"],
            },
        },
    ]
