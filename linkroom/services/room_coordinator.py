# linkroom/services/room_coordinator.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Set

from linkroom.core.errors import AlreadyInRoom, RoomNotFound
from linkroom.models.models import (
    CreateRoomRequest,
    FileInfo,
    JoinRoomRequest,
    Message,
    SendClipboardRequest,
    SendFileRequest,
    SendTextRequest,
)
from linkroom.services.device_info import resolve_device
from linkroom.services.room import Room
from linkroom.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_SECONDS = 60.0
DEFAULT_ROOM_NAME = "My Workspace"
UNKNOWN_DEVICE_NAME = "Unknown device"

Ack = Callable[[dict], None]


class Publisher(Protocol):
    def publish(self, room_id: str, event: dict) -> None: ...


class RoomChannels(Protocol):
    def join_room(self, connection_id: str, room_id: str) -> None: ...

    def leave_room(self, connection_id: str, room_id: str) -> None: ...


class RoomStorage(Protocol):
    def remove_room(self, room_id: str) -> bool: ...


@dataclass
class ConnectionSession:
    """
    Per-connection state, owned by the websocket handler.

    Unattached until a create/join succeeds; attached to exactly one room
    afterwards; detached again by disconnect.
    """

    connection_id: str
    user_agent: str = ""
    room_id: Optional[str] = None
    device_name: Optional[str] = None

    @property
    def is_attached(self) -> bool:
        return self.room_id is not None

    def attach(self, room_id: str, device_name: str) -> None:
        self.room_id = room_id
        self.device_name = device_name

    def detach(self) -> None:
        self.room_id = None
        self.device_name = None


def message_event(message: Message) -> dict:
    return {"type": "new-message", "message": message.to_wire()}


def device_update_event(room: Room) -> dict:
    return {"type": "device-update", "devices": [d.to_wire() for d in room.device_list()]}


# ============================================================================
# ROOM COORDINATOR
# ============================================================================

class RoomCoordinator:
    """
    Event-driven control surface for rooms.

    Every handler mutates room state without awaiting, so on a single event
    loop each action is applied atomically. Acknowledgements go to the
    caller through the `ack` callable before any broadcast the action
    produces; broadcasts are handed to the publisher in the order messages
    were appended to the room log.

    Empty rooms are evicted after `grace_period` seconds. The eviction task
    re-reads the registry when it fires, so a device that rejoined in the
    meantime keeps the room alive. A room emptied again after a rejoin is
    timed from its latest emptying.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        channels: RoomChannels,
        publisher: Publisher,
        storage: Optional[RoomStorage] = None,
        grace_period: float = DEFAULT_GRACE_PERIOD_SECONDS,
        default_room_name: str = DEFAULT_ROOM_NAME,
    ) -> None:
        self.registry = registry
        self.channels = channels
        self.publisher = publisher
        self.storage = storage
        self.grace_period = grace_period
        self.default_room_name = default_room_name
        self.message_count = 0
        self._evictions: Set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def create_room(self, session: ConnectionSession, request: CreateRoomRequest, ack: Ack) -> Room:
        """
        Create a room with the caller as its first device.

        The snapshot in the ack already holds the "created" system message,
        which is then broadcast like every other room event.
        """
        self._ensure_unattached(session)

        info = resolve_device(session.user_agent)
        device_name = request.device_name or f"{info.os_name} Device"
        room_name = request.room_name or self.default_room_name

        room = self.registry.create_room(room_name, creator_id=session.connection_id)
        device = room.add_device(session.connection_id, device_name, info, is_creator=True)
        self.channels.join_room(session.connection_id, room.id)
        session.attach(room.id, device.name)

        created = room.append_message(Message.system(f"{device.name} created the workspace"))

        ack({"success": True, "room": room.snapshot().to_wire()})
        self._publish(room, message_event(created))
        return room

    def join_room(self, session: ConnectionSession, request: JoinRoomRequest, ack: Ack) -> Room:
        """
        Join an existing room by code.

        Raises:
            AlreadyInRoom: the connection is attached to a room already
            RoomNotFound: no live room uses the code
        """
        self._ensure_unattached(session)

        room = self.registry.get_room_by_code(request.code)
        if room is None:
            logger.info("✗ Join rejected, unknown code %s", request.code)
            raise RoomNotFound()

        info = resolve_device(session.user_agent)
        device = room.add_device(
            session.connection_id,
            request.device_name or f"{info.os_name} Device",
            info,
        )
        self.channels.join_room(session.connection_id, room.id)
        session.attach(room.id, device.name)

        logger.info("→ %s joined '%s' (%d devices)", device.name, room.name, room.device_count)

        ack({"success": True, "room": room.snapshot().to_wire()})
        joined = room.append_message(Message.system(f"{device.name} joined the workspace"))
        self._publish(room, message_event(joined))
        self._publish(room, device_update_event(room))
        return room

    def disconnect(self, session: ConnectionSession) -> None:
        """
        Remove the session's device and tell the remaining members.

        Schedules eviction when the room becomes empty.
        """
        room = self._current_room(session)
        device_name = session.device_name
        if session.is_attached:
            self.channels.leave_room(session.connection_id, session.room_id)
        session.detach()
        if room is None:
            return

        room.remove_device(session.connection_id)

        left = room.append_message(
            Message.system(f"{device_name or UNKNOWN_DEVICE_NAME} left the workspace")
        )
        self._publish(room, message_event(left))
        self._publish(room, device_update_event(room))

        logger.info("← %s left '%s' (%d devices)", device_name, room.name, room.device_count)

        if room.is_empty:
            self.schedule_eviction(room.id, room.vacancy)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_text(self, session: ConnectionSession, request: SendTextRequest) -> Optional[Message]:
        room = self._current_room(session)
        if room is None:
            return None
        message = Message.text(request.content, session.device_name, session.connection_id)
        logger.info("💬 %s: %s", session.device_name, request.content[:50])
        return self._record(room, message)

    def send_clipboard(self, session: ConnectionSession, request: SendClipboardRequest) -> Optional[Message]:
        room = self._current_room(session)
        if room is None:
            return None
        message = Message.clipboard(request.content, session.device_name, session.connection_id)
        logger.info("📋 %s synced clipboard", session.device_name)
        return self._record(room, message)

    def send_file(self, session: ConnectionSession, request: SendFileRequest) -> Optional[Message]:
        """Record a file that was already stored through the upload route."""
        room = self._current_room(session)
        if room is None:
            return None
        file = FileInfo(**request.model_dump())
        message = Message.file_reference(file, session.device_name, session.connection_id)
        logger.info("📁 %s shared file: %s", session.device_name, request.original_name)
        return self._record(room, message)

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def schedule_eviction(self, room_id: str, vacancy: Optional[int] = None) -> Optional[asyncio.Task]:
        """
        Evict the room once it has stayed empty for the grace period.

        With `vacancy` set, the timer is void if the room was emptied again
        later; that later departure has its own timer.
        """
        if self._closed:
            return None
        task = asyncio.get_running_loop().create_task(self._evict_after_grace(room_id, vacancy))
        self._evictions.add(task)
        task.add_done_callback(self._evictions.discard)
        return task

    async def _evict_after_grace(self, room_id: str, vacancy: Optional[int] = None) -> bool:
        await asyncio.sleep(self.grace_period)
        room = self.registry.get_room(room_id)
        if room is not None and vacancy is not None and room.vacancy != vacancy:
            logger.debug("Eviction of %s superseded by a later departure", room.name)
            return False
        return await self.evict_if_empty(room_id)

    async def evict_if_empty(self, room_id: str) -> bool:
        """
        Delete a room if it still has no devices.

        Returns:
            True if the room was deleted
        """
        room = self.registry.get_room(room_id)
        if room is None or not room.is_empty:
            return False

        self.registry.delete_room(room_id)
        logger.info("🧹 Empty room removed: %s", room.name)

        if self.storage is not None:
            await asyncio.to_thread(self.storage.remove_room, room_id)
        return True

    async def close(self) -> None:
        """Cancel pending evictions (application shutdown)."""
        self._closed = True
        pending = list(self._evictions)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_unattached(self, session: ConnectionSession) -> None:
        if session.is_attached:
            raise AlreadyInRoom()

    def _current_room(self, session: ConnectionSession) -> Optional[Room]:
        if not session.is_attached:
            return None
        return self.registry.get_room(session.room_id)

    def _record(self, room: Room, message: Message) -> Message:
        room.append_message(message)
        self._publish(room, message_event(message))
        return message

    def _publish(self, room: Room, event: dict) -> None:
        if event["type"] == "new-message":
            self.message_count += 1
        self.publisher.publish(room.id, event)
