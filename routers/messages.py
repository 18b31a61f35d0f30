from fastapi import APIRouter, Depends, HTTPException
from typing import List

from auth import get_current_user
from backend import RedisBackend, get_backend
from logging_config import get_logger
from schemas.chats import MessageResponse, SendMessageRequest

logger = get_logger(__name__)

messages_router = APIRouter(prefix="/api/message", tags=["messages"])


@messages_router.post("", response_model=MessageResponse)
def send_message(
    body: SendMessageRequest,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    """Persist a message. The response is the payload clients emit as `new message`."""
    if not body.content or not body.chatId:
        logger.warning("Invalid data passed into request")
        raise HTTPException(status_code=400, detail="content and chatId are required")

    try:
        message = backend.create_message(current_user["_id"], body.chatId, body.content)
    except Exception as e:
        logger.error(f"Error storing message in chat {body.chatId}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to send message")
    if not message:
        raise HTTPException(status_code=404, detail="Chat Not Found")
    return message


@messages_router.get("/{chat_id}", response_model=List[MessageResponse])
def all_messages(
    chat_id: str,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    try:
        if not backend.get_chat_document(chat_id):
            raise HTTPException(status_code=404, detail="Chat Not Found")
        return backend.list_messages(chat_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing messages for chat {chat_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch messages")
