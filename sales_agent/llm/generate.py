import os
import logging
import asyncio
import random
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from sales_agent.chatbot.prompts import build_system_instruction, tool_declarations
from sales_agent.chatbot.turns import ModelReply, PlainReply, Role, ToolInvocation, Turn
from sales_agent.integrations.contracts.interfaces import DialogueModel
from sales_agent.utils.config_loader import AgentConfig, GenerationConfig

logger = logging.getLogger(__name__)


class DialogueModelError(Exception):
    pass


def turn_to_content(turn: Turn) -> types.Content:
    """Map a stored turn onto Gemini's user/model roles."""
    if turn.tool_call is not None:
        return types.Content(
            role="model",
            parts=[types.Part.from_function_call(name=turn.tool_call.name, args=dict(turn.tool_call.args))],
        )
    if turn.tool_result is not None:
        return types.Content(
            role="user",
            parts=[
                types.Part.from_function_response(
                    name=turn.tool_result.get("name", ""),
                    response=turn.tool_result.get("response") or {},
                )
            ],
        )
    role = "user" if turn.role == Role.USER else "model"
    return types.Content(role=role, parts=[types.Part.from_text(text=turn.text or "")])


class GeminiDialogueModel(DialogueModel):
    def __init__(
        self,
        generation: Optional[GenerationConfig] = None,
        agent: Optional[AgentConfig] = None,
        product_types: Optional[List[str]] = None,
    ):
        self.generation = generation or GenerationConfig()
        api_key = os.environ.get(self.generation.api_key_env)
        if not api_key:
            raise RuntimeError(f"CRITICAL: {self.generation.api_key_env} is missing.")

        self.client = genai.Client(api_key=api_key)
        self.system_instruction = build_system_instruction(agent or AgentConfig())
        declarations = [
            types.FunctionDeclaration(
                name=d["name"],
                description=d["description"],
                parameters_json_schema=d["parameters"],
            )
            for d in tool_declarations(product_types or [])
        ]
        self.config = types.GenerateContentConfig(
            system_instruction=self.system_instruction,
            temperature=self.generation.temperature,
            tools=[types.Tool(function_declarations=declarations)],
        )

    async def start_turn(self, history: List[Turn], message: str) -> ModelReply:
        contents = [turn_to_content(t) for t in history]
        contents.append(types.Content(role="user", parts=[types.Part.from_text(text=message)]))
        response = await self._generate(contents)

        calls = response.function_calls or []
        if calls:
            if len(calls) > 1:
                logger.warning("Model returned %d function calls; using the first", len(calls))
            call = calls[0]
            return ToolInvocation(name=call.name, args=dict(call.args or {}))
        return PlainReply((response.text or "").strip())

    async def continue_turn(
        self,
        history: List[Turn],
        invocation: ToolInvocation,
        result: Dict[str, Any],
    ) -> PlainReply:
        contents = [turn_to_content(t) for t in history]
        contents.append(
            types.Content(
                role="user",
                parts=[types.Part.from_function_response(name=invocation.name, response=result)],
            )
        )
        response = await self._generate(contents)
        return PlainReply((response.text or "").strip())

    async def _generate(self, contents: List[types.Content]) -> Any:
        # google-genai client is blocking; run it off the event loop
        def _sync_generate():
            return self.client.models.generate_content(
                model=self.generation.model,
                contents=contents,
                config=self.config,
            )

        max_attempts = self.generation.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                response = await asyncio.to_thread(_sync_generate)
                logger.info("Generated reply from Gemini API")
                return response
            except Exception as e:
                if attempt >= max_attempts:
                    logger.error("GenAI error when generating response: %s: %s", type(e).__name__, e, exc_info=True)
                    raise DialogueModelError("Dialogue model unavailable") from e
                backoff = (2 ** (attempt - 1)) + random.uniform(0, 0.5)
                logger.warning(
                    "GenAI request failed on attempt %s/%s (%s). Retrying in %.2fs...",
                    attempt,
                    max_attempts,
                    type(e).__name__,
                    backoff,
                )
                await asyncio.sleep(backoff)
