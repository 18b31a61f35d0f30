import asyncio
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, Optional

from logging_config import get_logger
from registry import ConnectionRegistry
from schemas.events import (
    CONNECTED,
    JOIN_CHAT,
    MESSAGE_RECEIVED,
    MESSAGES_READ,
    MESSAGES_UPDATED_AS_READ,
    NEW_MESSAGE,
    SETUP,
    STOP_TYPING,
    TYPING,
    EventParseResult,
    parse_event,
)

logger = get_logger(__name__)

Handler = Callable[[str, Any, Any], Awaitable[None]]


class EventRouter:
    """Routes inbound real-time events to the right rooms.

    Delivery is best effort: malformed frames are logged, counted in
    `dropped` and never reported back to the sender.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        # Format: {event_name: count}, "unknown" for frames without a known name
        self.dropped: Counter = Counter()
        self.handlers: Dict[str, Handler] = {
            SETUP: self.on_setup,
            JOIN_CHAT: self.on_join_chat,
            NEW_MESSAGE: self.on_new_message,
            TYPING: self.on_typing,
            STOP_TYPING: self.on_stop_typing,
            MESSAGES_READ: self.on_messages_read,
        }

    async def dispatch(self, connection_id: str, text: str) -> None:
        result = parse_event(text)
        if not result.ok:
            self._drop(connection_id, result)
            return
        await self.handlers[result.name](connection_id, result.event.data, result.payload)

    async def on_setup(self, connection_id: str, user, payload) -> None:
        connection = self.registry.get(connection_id)
        if connection is None:
            return
        if connection.user_id and connection.user_id != user.id:
            logger.warning(
                f"Setup ignored: connection {connection_id} already identified as {connection.user_id}, got {user.id}"
            )
            self.dropped[SETUP] += 1
            return
        connection.user_id = user.id
        self.registry.join(connection_id, user.id)
        logger.info(f"Connection {connection_id} set up personal room {user.id}")
        await self.to_connection(connection_id, CONNECTED)

    async def on_join_chat(self, connection_id: str, room_id: str, payload) -> None:
        self.registry.join(connection_id, room_id)
        logger.debug(f"User joined room: {room_id} (connection {connection_id})")

    async def on_new_message(self, connection_id: str, message, payload) -> None:
        sender_id = message.sender.id
        recipients = [user_id for user_id in message.chat.participant_ids() if user_id != sender_id]
        logger.debug(f"New message from {sender_id}, fanning out to {len(recipients)} participants")
        for user_id in recipients:
            await self.to_room(user_id, MESSAGE_RECEIVED, payload, exclude=connection_id)

    async def on_typing(self, connection_id: str, room_id: str, payload) -> None:
        await self.to_room(room_id, TYPING, payload, exclude=connection_id)

    async def on_stop_typing(self, connection_id: str, room_id: str, payload) -> None:
        await self.to_room(room_id, STOP_TYPING, payload, exclude=connection_id)

    async def on_messages_read(self, connection_id: str, receipt, payload) -> None:
        await self.to_room(receipt.chatId, MESSAGES_UPDATED_AS_READ, payload, exclude=connection_id)

    async def to_connection(self, connection_id: str, event: str, data: Any = None) -> bool:
        connection = self.registry.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.send(event, data)
            return True
        except Exception as e:
            logger.warning(f"Error sending {event!r} to connection {connection_id}: {e}")
            return False

    async def to_room(self, room_id: str, event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        """Emit to every member of a room except `exclude`. Returns the number of successful sends."""
        targets = [cid for cid in self.registry.members_of(room_id) if cid != exclude]
        if not targets:
            return 0
        results = await asyncio.gather(*(self.to_connection(cid, event, data) for cid in targets))
        delivered = sum(1 for ok in results if ok)
        logger.debug(f"Broadcast {event!r} to {delivered}/{len(targets)} connections in room {room_id}")
        return delivered

    def reject(self, connection_id: str, reason: str, name: Optional[str] = None) -> None:
        """Count and log a frame that will not be routed."""
        self.dropped[name or "unknown"] += 1
        logger.warning(f"Dropped event {name!r} from connection {connection_id}: {reason}")

    def _drop(self, connection_id: str, result: EventParseResult) -> None:
        self.reject(connection_id, result.error, result.name)
