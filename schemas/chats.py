from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Union

from schemas.users import SenderResponse, UserResponse


class AccessChatRequest(BaseModel):
    userId: Optional[str] = None

class CreateGroupRequest(BaseModel):
    name: Optional[str] = None
    # List of user ids, or the same list JSON encoded as a string
    users: Optional[Union[List[str], str]] = None

class RenameGroupRequest(BaseModel):
    chatId: Optional[str] = None
    chatName: Optional[str] = None

class GroupMemberRequest(BaseModel):
    chatId: Optional[str] = None
    userId: Optional[str] = None

class SendMessageRequest(BaseModel):
    content: Optional[str] = None
    chatId: Optional[str] = None

class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    sender: Optional[SenderResponse] = None
    content: Optional[str] = None
    chat: Union[ChatResponse, str, None] = None
    readBy: List[str] = []
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    chatName: Optional[str] = None
    isGroupChat: bool = False
    users: List[UserResponse] = []
    groupAdmin: Optional[UserResponse] = None
    latestMessage: Optional[MessageResponse] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

class StatusResponse(BaseModel):
    message: str


MessageResponse.model_rebuild()
ChatResponse.model_rebuild()
