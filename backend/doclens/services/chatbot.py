"""
Chatbot service
Chat completion over the OpenAI API for the in-app assistant.
"""
import os
import logging
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from doclens.errors import UpstreamUnavailable
from doclens.models.chat import ChatMessage

logger = logging.getLogger(__name__)

CHATBOT_MODEL = os.getenv("CHATBOT_MODEL", "gpt-3.5-turbo")
CHATBOT_TEMPERATURE = 0.8


class ChatbotService:
    def __init__(self, api_key: Optional[str] = None, model: str = CHATBOT_MODEL, client=None):
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY")
        self.model = model
        self.client = client

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            if not self.api_key:
                raise RuntimeError("OPENAI_API_KEY environment variable not set")
            self.client = AsyncOpenAI(api_key=self.api_key)
        return self.client

    async def generate_response(self, messages: List[ChatMessage]) -> str:
        """Assistant reply to the conversation so far; empty string when the model returns none."""
        client = self._get_client()
        try:
            completion = await client.chat.completions.create(
                model=self.model,
                messages=[m.model_dump() for m in messages],
                temperature=CHATBOT_TEMPERATURE,
            )
        except openai.OpenAIError as e:
            logger.error(f"Chat completion failed: {e}")
            raise UpstreamUnavailable("Chatbot service unreachable")

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    async def close(self):
        if self.client is not None:
            await self.client.close()
