# src/agents/chat.py — v1
"""Chat agent — template replies shaped by a configurable personality.

Settings: personality (friendly, professional, creative or any label),
max_response_length, language.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

from pydantic import ValidationError

from agentengine.agents.base_agent import BaseAgent
from agentengine.agents.models import ChatInput, ChatOutput, ChatSettings
from agentengine.core.models import AgentResponse, ExecutionContext

logger = logging.getLogger(__name__)

_TEMPLATES: dict[str, tuple[list[str], list[str]]] = {
    "friendly": (
        [
            'Hi there! Thanks for your message about "{message}". I\'m happy to help! ',
            'Hello! That\'s an interesting question about "{message}". Let me share some thoughts! ',
            'Hey! I love chatting about topics like "{message}". Here\'s what I think: ',
            'Hi! Great to hear from you! Regarding "{message}", I\'d say ',
        ],
        [
            "I hope this helps you out! Feel free to ask me anything else.",
            "Let me know if you need more information - I'm here to help!",
            "I hope that makes sense! Always happy to chat more about this.",
            "Hope this gives you what you were looking for!",
        ],
    ),
    "professional": (
        [
            'Thank you for your inquiry regarding "{message}". ',
            'I acknowledge your question about "{message}". ',
            'Regarding your message about "{message}", ',
            'In response to your inquiry about "{message}", ',
        ],
        [
            "I can provide you with comprehensive information on this matter.",
            "This is indeed a relevant topic that warrants detailed consideration.",
            "I would recommend a systematic approach to address your requirements.",
            "Please let me know if you require additional clarification or details.",
        ],
    ),
    "creative": (
        [
            '"{message}" sparked some fascinating ideas! ',
            'Your message about "{message}" is like a canvas waiting for colors! ',
            '"{message}" - now that\'s a topic that gets my creative gears turning! ',
            'Fantastic question about "{message}"! Let\'s explore this together! ',
        ],
        [
            "Imagine if we could approach this from a completely new angle...",
            "What if we mixed traditional thinking with some out-of-the-box ideas?",
            "Picture this: a world where creative solutions meet practical needs!",
            "Let your imagination run wild - there are endless possibilities here!",
        ],
    ),
}


class ChatAgent(BaseAgent):
    """Generates a short reply to ``{"message": str}``."""

    # Simulated generation latency, seconds
    delay_range_s: tuple[float, float] = (0.05, 0.15)

    def default_settings(self) -> dict[str, Any]:
        return ChatSettings().model_dump()

    def validate_settings(self, new_settings: dict[str, Any]) -> None:
        if "max_response_length" in new_settings:
            value = new_settings["max_response_length"]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError("max_response_length must be a positive number")
        for key in ("personality", "language"):
            if key in new_settings:
                value = new_settings[key]
                if not isinstance(value, str) or not value.strip():
                    raise ValueError(f"{key} must be a non-empty string")

    async def execute(
        self, input_data: Any, context: ExecutionContext
    ) -> AgentResponse:
        if not isinstance(input_data, dict):
            return AgentResponse(
                success=False,
                error="Invalid input format. Expected object with message property.",
            )
        try:
            chat_input = ChatInput.model_validate(input_data)
        except ValidationError:
            return AgentResponse(success=False, error="Missing or invalid message in input.")
        if not chat_input.message.strip():
            return AgentResponse(success=False, error="Message cannot be empty.")

        settings = ChatSettings.model_validate(self._config.settings)
        reply = await self._generate_response(chat_input.message, settings)
        output = ChatOutput(
            response=reply,
            personality=settings.personality,
            message_length=len(reply),
        )
        return AgentResponse(success=True, data=output.model_dump())

    async def _generate_response(self, message: str, settings: ChatSettings) -> str:
        await asyncio.sleep(random.uniform(*self.delay_range_s))  # noqa: S311

        templates = _TEMPLATES.get(settings.personality.lower())
        if templates is None:
            reply = (
                f'Thank you for your message about "{message}". As an agent with a '
                f"{settings.personality} personality, I appreciate your input and am "
                "here to assist you with any questions or tasks you might have."
            )
        else:
            intros, bodies = templates
            reply = random.choice(intros).format(message=message) + random.choice(bodies)  # noqa: S311

        limit = settings.max_response_length
        if len(reply) > limit:
            # No room for the ellipsis below 4 characters
            reply = reply[: limit - 3] + "..." if limit > 3 else reply[:limit]
        return reply

    # --- Settings accessors ---

    @property
    def personality(self) -> str:
        return self._config.settings["personality"]

    def set_personality(self, personality: str) -> None:
        self.update_settings({"personality": personality})

    @property
    def max_response_length(self) -> int:
        return self._config.settings["max_response_length"]

    def set_max_response_length(self, length: int) -> None:
        if length < 1:
            raise ValueError("Max response length must be at least 1 character")
        self.update_settings({"max_response_length": length})

    @property
    def language(self) -> str:
        return self._config.settings["language"]

    def set_language(self, language: str) -> None:
        self.update_settings({"language": language})
