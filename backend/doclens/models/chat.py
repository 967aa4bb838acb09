"""Chatbot request/response models."""

from pydantic import BaseModel
from typing import List, Literal


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatbotRequest(BaseModel):
    messages: List[ChatMessage]


class ChatbotResponse(BaseModel):
    content: str
