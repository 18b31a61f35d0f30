import json
from dataclasses import dataclass
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, ValidationError

# client -> server
SETUP = "setup"
JOIN_CHAT = "join chat"
TYPING = "typing"
STOP_TYPING = "stop typing"
NEW_MESSAGE = "new message"
MESSAGES_READ = "messages read"

# server -> client
CONNECTED = "connected"
MESSAGE_RECEIVED = "message received"
MESSAGES_UPDATED_AS_READ = "messages updated as read"

# Room ids are opaque: no normalisation beyond rejecting the empty string
RoomId = Annotated[str, StringConstraints(min_length=1)]


class UserRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: RoomId = Field(alias="_id")


class ChatRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    # Populated user documents or bare ids
    users: List[Union[UserRef, RoomId]]

    def participant_ids(self) -> List[str]:
        seen = []
        for user in self.users:
            user_id = user.id if isinstance(user, UserRef) else user
            if user_id not in seen:
                seen.append(user_id)
        return seen


class NewMessagePayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    chat: ChatRef
    sender: UserRef


class ReadReceipt(BaseModel):
    model_config = ConfigDict(extra="allow")

    chatId: RoomId
    userId: RoomId


class SetupEvent(BaseModel):
    event: Literal["setup"]
    data: UserRef


class JoinChatEvent(BaseModel):
    event: Literal["join chat"]
    data: RoomId


class TypingEvent(BaseModel):
    event: Literal["typing"]
    data: RoomId


class StopTypingEvent(BaseModel):
    event: Literal["stop typing"]
    data: RoomId


class NewMessageEvent(BaseModel):
    event: Literal["new message"]
    data: NewMessagePayload


class MessagesReadEvent(BaseModel):
    event: Literal["messages read"]
    data: ReadReceipt


InboundEvent = Annotated[
    Union[SetupEvent, JoinChatEvent, TypingEvent, StopTypingEvent, NewMessageEvent, MessagesReadEvent],
    Field(discriminator="event"),
]

inbound_event_adapter = TypeAdapter(InboundEvent)

EVENT_NAMES = (SETUP, JOIN_CHAT, TYPING, STOP_TYPING, NEW_MESSAGE, MESSAGES_READ)


@dataclass
class EventParseResult:
    """Outcome of validating one inbound frame.

    On success `event` holds the typed variant and `payload` the original
    `data` value, which is what gets forwarded to other clients.
    """

    name: Optional[str] = None
    event: Optional[BaseModel] = None
    payload: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_event(text: str) -> EventParseResult:
    try:
        frame = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        return EventParseResult(error=f"invalid json: {e}")

    if not isinstance(frame, dict):
        return EventParseResult(error="frame is not an object")

    name = frame.get("event")
    if name not in EVENT_NAMES:
        return EventParseResult(name=name if isinstance(name, str) else None, error=f"unknown event {name!r}")

    try:
        event = inbound_event_adapter.validate_python(frame)
    except ValidationError as e:
        return EventParseResult(name=name, payload=frame.get("data"), error=f"malformed payload: {e.error_count()} error(s)")

    return EventParseResult(name=name, event=event, payload=frame.get("data"))
