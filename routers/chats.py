import json
from fastapi import APIRouter, Depends, HTTPException
from typing import List

from auth import get_current_user
from backend import RedisBackend, get_backend
from logging_config import get_logger
from schemas.chats import (
    AccessChatRequest,
    ChatResponse,
    CreateGroupRequest,
    GroupMemberRequest,
    RenameGroupRequest,
    StatusResponse,
)

logger = get_logger(__name__)

chats_router = APIRouter(prefix="/api/chat", tags=["chats"])


def parse_group_users(users) -> list:
    if isinstance(users, str):
        try:
            users = json.loads(users)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="users must be a list of user ids")
    if not isinstance(users, list) or not all(isinstance(u, str) for u in users):
        raise HTTPException(status_code=400, detail="users must be a list of user ids")
    return users


@chats_router.post("", response_model=ChatResponse)
def access_chat(
    body: AccessChatRequest,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    if not body.userId:
        logger.warning("UserId param not sent with request")
        raise HTTPException(status_code=400, detail="userId is required")
    try:
        if not backend.user_exists(body.userId):
            raise HTTPException(status_code=404, detail="User not found")
        return backend.access_chat(current_user["_id"], body.userId)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error accessing chat with {body.userId}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to access chat")


@chats_router.get("", response_model=List[ChatResponse])
def fetch_chats(current_user: dict = Depends(get_current_user), backend: RedisBackend = Depends(get_backend)):
    try:
        return backend.list_chats(current_user["_id"])
    except Exception as e:
        logger.error(f"Error fetching chats for {current_user['_id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch chats")


@chats_router.post("/group", response_model=ChatResponse)
def create_group_chat(
    body: CreateGroupRequest,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    if not body.users or not body.name:
        raise HTTPException(status_code=400, detail="Please Fill all the fields")

    users = parse_group_users(body.users)
    if len(users) < 2:
        raise HTTPException(status_code=400, detail="More than 2 users are required to form a group chat")

    try:
        missing = [u for u in users if not backend.user_exists(u)]
        if missing:
            raise HTTPException(status_code=404, detail=f"User not found: {missing[0]}")
        chat = backend.create_group_chat(body.name, users, current_user["_id"])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating group chat {body.name!r}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create group chat")

    logger.info(f"Group chat {body.name!r} created by {current_user['_id']} with {len(users)} users")
    return chat


@chats_router.put("/rename", response_model=ChatResponse)
def rename_group(
    body: RenameGroupRequest,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    if not body.chatId or not body.chatName:
        raise HTTPException(status_code=400, detail="chatId and chatName are required")
    try:
        chat = backend.rename_chat(body.chatId, body.chatName)
    except Exception as e:
        logger.error(f"Error renaming chat {body.chatId}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to rename chat")
    if not chat:
        raise HTTPException(status_code=404, detail="Chat Not Found")
    return chat


@chats_router.put("/groupadd", response_model=ChatResponse)
def add_to_group(
    body: GroupMemberRequest,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    if not body.chatId or not body.userId:
        raise HTTPException(status_code=400, detail="chatId and userId are required")
    try:
        if not backend.user_exists(body.userId):
            raise HTTPException(status_code=404, detail="User not found")
        chat = backend.add_to_group(body.chatId, body.userId)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding {body.userId} to chat {body.chatId}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to add user to group")
    if not chat:
        raise HTTPException(status_code=404, detail="Chat Not Found")
    return chat


@chats_router.put("/groupremove", response_model=ChatResponse)
def remove_from_group(
    body: GroupMemberRequest,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    if not body.chatId or not body.userId:
        raise HTTPException(status_code=400, detail="chatId and userId are required")
    try:
        chat = backend.remove_from_group(body.chatId, body.userId)
    except Exception as e:
        logger.error(f"Error removing {body.userId} from chat {body.chatId}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to remove user from group")
    if not chat:
        raise HTTPException(status_code=404, detail="Chat Not Found")
    return chat


@chats_router.delete("/group/{chat_id}", response_model=StatusResponse)
def delete_group(
    chat_id: str,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    try:
        chat = backend.get_chat_document(chat_id)
        if not chat:
            raise HTTPException(status_code=404, detail="Chat Not Found")

        if chat.get("group_admin") != current_user["_id"]:
            logger.warning(f"Delete chat {chat_id} refused: {current_user['_id']} is not the admin")
            raise HTTPException(status_code=403, detail="Only the group admin can delete the chat")

        backend.delete_chat(chat_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting chat {chat_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not delete group chat")
    return {"message": "Group chat and all its messages have been deleted"}


@chats_router.put("/{chat_id}/read", response_model=StatusResponse)
def mark_messages_as_read(
    chat_id: str,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    try:
        if not backend.get_chat_document(chat_id):
            raise HTTPException(status_code=404, detail="Chat Not Found")
        backend.mark_messages_read(chat_id, current_user["_id"])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error marking chat {chat_id} read: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to mark messages as read")
    return {"message": "Messages marked as read"}
