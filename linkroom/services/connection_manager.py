# linkroom/services/connection_manager.py

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class Connection:
    """A live websocket plus its outbound queue."""

    def __init__(self, websocket: WebSocket, connection_id: str, user_agent: str = "") -> None:
        self.websocket = websocket
        self.id = connection_id
        self.user_agent = user_agent
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.writer: Optional[asyncio.Task] = None


class ConnectionManager:
    """
    Manages WebSocket connections and room channel memberships.

    This is the local fan-out primitive. The room coordinator never touches
    sockets: it tells this class which connections belong to which room
    channel and publishes events tagged with a room id.

    Data Structures:
        connections: Maps connection_id -> Connection
        rooms: Maps room_id -> Set of connection_ids subscribed to it
               Example: {"uuid-123": {"conn-a", "conn-b"}}

    Ordering:
        Each connection has one outbound queue drained by one writer task.
        publish() and send() only enqueue, so events reach every member in
        the order they were published, and a slow socket never stalls the
        event loop for other rooms.
    """

    def __init__(self) -> None:
        """Initialize connection manager with empty data structures."""
        self.connections: Dict[str, Connection] = {}
        self.rooms: Dict[str, Set[str]] = {}

    async def connect(self, websocket: WebSocket) -> Connection:
        """
        Accept a new WebSocket connection and start its writer.

        Note:
            The connection is not subscribed to any room. The coordinator
            joins it to a room channel after a successful create/join.
        """
        await websocket.accept()

        connection = Connection(
            websocket,
            connection_id=str(uuid.uuid4()),
            user_agent=websocket.headers.get("user-agent", ""),
        )
        connection.writer = asyncio.create_task(self._pump(connection))
        self.connections[connection.id] = connection

        logger.info("✓ Device %s connected. Total: %d", connection.id, len(self.connections))
        return connection

    def disconnect(self, connection_id: str) -> None:
        """
        Forget a connection: leave every room channel and stop its writer.

        Safe to call more than once.
        """
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return

        for room_id in list(self.rooms):
            self.leave_room(connection_id, room_id)

        if connection.writer is not None:
            connection.writer.cancel()

        logger.info("✗ Device %s disconnected. Total: %d", connection_id, len(self.connections))

    def join_room(self, connection_id: str, room_id: str) -> None:
        if connection_id not in self.connections:
            return  # Connection already closed
        self.rooms.setdefault(room_id, set()).add(connection_id)

    def leave_room(self, connection_id: str, room_id: str) -> None:
        members = self.rooms.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        # Clean up empty channel
        if not members:
            del self.rooms[room_id]

    def send(self, connection_id: str, event: dict) -> None:
        """Queue an event for a single connection."""
        connection = self.connections.get(connection_id)
        if connection is None:
            return
        connection.outbox.put_nowait(event)

    def broadcast_to_room(self, room_id: str, event: dict) -> None:
        """
        Queue an event for every connection subscribed to a room.

        Members who disconnect before their writer gets to the event simply
        never receive it.
        """
        members = self.rooms.get(room_id)
        if not members:
            # No one subscribed to this room currently
            logger.debug("[routing] Skipped broadcast: room=%s has 0 subscribers", room_id)
            return

        logger.debug("📨 Broadcasting %s to room %s: %d clients", event.get("type"), room_id, len(members))
        for connection_id in members:
            self.send(connection_id, event)

    def publish(self, room_id: str, event: dict) -> None:
        self.broadcast_to_room(room_id, event)

    async def _pump(self, connection: Connection) -> None:
        while True:
            event = await connection.outbox.get()
            try:
                await connection.websocket.send_json(event)
            except Exception as e:
                logger.error("Send error on %s: %s", connection.id, e)
                # Mark for cleanup; the receive loop notices the close itself.
                connection.writer = None
                self.disconnect(connection.id)
                return

    async def close(self) -> None:
        """Stop every writer task (application shutdown)."""
        writers = [c.writer for c in self.connections.values() if c.writer is not None]
        for writer in writers:
            writer.cancel()
        if writers:
            await asyncio.gather(*writers, return_exceptions=True)
        self.connections.clear()
        self.rooms.clear()
