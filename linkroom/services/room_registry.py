# linkroom/services/room_registry.py

from __future__ import annotations

import logging
import threading
import uuid
from typing import Dict, List, Optional

from linkroom.services.room import Room
from linkroom.services.room_codes import ROOM_CODE_MAX_ATTEMPTS, generate_room_code

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM REGISTRY
# ============================================================================
class RoomRegistry:
    """
    Owns every live room and the join-code index that points at it.

    Rooms live in memory only and are gone after a restart. The code index
    is kept strictly in step with the room table: a code is released in the
    same call that deletes its room.

    Attributes:
        rooms: Dictionary mapping room_id -> Room
        codes: Dictionary mapping 6-digit join code -> room_id

    Usage:
        registry = RoomRegistry()
        room = registry.create_room("Team", creator_id="conn-1")
        registry.get_room_by_code(room.code)
        registry.delete_room(room.id)
    """

    def __init__(self, max_code_attempts: int = ROOM_CODE_MAX_ATTEMPTS) -> None:
        self.rooms: Dict[str, Room] = {}
        self.codes: Dict[str, str] = {}
        self.max_code_attempts = max_code_attempts
        # Guards both indices; upload handlers may read from worker threads.
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self.rooms

    def create_room(self, name: str, creator_id: str) -> Room:
        """
        Create a room with a fresh id and a join code no live room is using.

        Args:
            name: Display name of the room
            creator_id: Connection id of the creating device

        Returns:
            Room: The newly registered room (with no devices yet)

        Raises:
            RoomCodesExhausted: no free code found within the retry bound
        """
        with self._lock:
            code = generate_room_code(lambda c: c in self.codes, self.max_code_attempts)
            room = Room(room_id=str(uuid.uuid4()), code=code, name=name, creator_id=creator_id)
            self.rooms[room.id] = room
            self.codes[code] = room.id

        logger.info("✓ Created room: %s (%s)", room.name, room.code)
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def get_room_by_code(self, code: str) -> Optional[Room]:
        with self._lock:
            room_id = self.codes.get(code)
            if room_id is None:
                return None
            return self.rooms.get(room_id)

    def list_rooms(self) -> List[Room]:
        return list(self.rooms.values())

    def delete_room(self, room_id: str) -> bool:
        """
        Remove a room and release its code.

        Returns:
            True if the room was deleted, False if it was already gone
        """
        with self._lock:
            room = self.rooms.pop(room_id, None)
            if room is None:
                return False
            if self.codes.get(room.code) == room_id:
                del self.codes[room.code]

        logger.info("✓ Deleted room: %s (%s)", room.name, room.code)
        return True
