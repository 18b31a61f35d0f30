import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """One live WebSocket link and the rooms it has joined."""

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        self.id = connection_id or str(uuid.uuid4())
        self.websocket = websocket
        self.rooms: Set[str] = set()
        # Personal room announced via `setup`, at most one per lifetime
        self.user_id: Optional[str] = None
        self.connected_at = datetime.now().isoformat()

    async def send(self, event: str, data: Any = None):
        await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self):
        return f"Connection(id={self.id!r}, user_id={self.user_id!r}, rooms={len(self.rooms)})"


class ConnectionRegistry:
    """In-memory room membership for the connections of this process.

    All methods are synchronous, so on a single event loop membership changes
    are never interleaved with a fan-out that is reading them.
    """

    def __init__(self):
        # Format: {connection_id: Connection}
        self.connections: Dict[str, Connection] = {}
        # Format: {room_id: {connection_id, ...}}
        self.rooms: Dict[str, Set[str]] = {}

    def register(self, websocket: WebSocket) -> Connection:
        connection = Connection(websocket)
        self.connections[connection.id] = connection
        logger.debug(f"Registered connection {connection.id} (total: {len(self.connections)})")
        return connection

    def unregister(self, connection_id: str) -> None:
        """Drop a connection and release every room it had joined."""
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return
        for room_id in list(connection.rooms):
            self._discard(room_id, connection_id)
        logger.debug(f"Unregistered connection {connection_id}, released {len(connection.rooms)} rooms")
        connection.rooms.clear()

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def join(self, connection_id: str, room_id: str) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.warning(f"Join ignored: unknown connection {connection_id} for room {room_id}")
            return False
        self.rooms.setdefault(room_id, set()).add(connection_id)
        connection.rooms.add(room_id)
        logger.debug(f"Connection {connection_id} joined room {room_id} (members: {len(self.rooms[room_id])})")
        return True

    def leave(self, connection_id: str, room_id: str) -> None:
        connection = self.connections.get(connection_id)
        if connection is not None:
            connection.rooms.discard(room_id)
        self._discard(room_id, connection_id)

    def members_of(self, room_id: str) -> Set[str]:
        return set(self.rooms.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        connection = self.connections.get(connection_id)
        return set(connection.rooms) if connection else set()

    def stats(self) -> dict:
        return {
            "connections": len(self.connections),
            "rooms": len(self.rooms),
            "identified_connections": sum(1 for c in self.connections.values() if c.user_id),
        }

    def _discard(self, room_id: str, connection_id: str) -> None:
        members = self.rooms.get(room_id)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room_id]
