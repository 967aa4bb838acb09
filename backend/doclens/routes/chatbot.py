"""DocLens Chatbot Route

- POST /api/chatbot - Assistant reply for a conversation (authenticated)
"""

from fastapi import APIRouter, Depends

from doclens.dependencies import get_chatbot, get_current_user
from doclens.models.chat import ChatbotRequest, ChatbotResponse
from doclens.services.chatbot import ChatbotService

router = APIRouter(prefix="/api/chatbot", tags=["Chatbot"])


@router.post("", response_model=ChatbotResponse)
async def generate_chatbot_response(
    data: ChatbotRequest,
    user=Depends(get_current_user),
    chatbot: ChatbotService = Depends(get_chatbot),
):
    return ChatbotResponse(content=await chatbot.generate_response(data.messages))
