# linkroom/services/room_codes.py

from __future__ import annotations

import random
from typing import Callable

from linkroom.core.errors import RoomCodesExhausted

ROOM_CODE_MIN = 100000
ROOM_CODE_MAX = 999999
ROOM_CODE_MAX_ATTEMPTS = 1000


def generate_room_code(
    is_taken: Callable[[str], bool],
    max_attempts: int = ROOM_CODE_MAX_ATTEMPTS,
) -> str:
    """
    Draw a 6-digit join code that no live room is using.

    Args:
        is_taken: Returns True if a code is already assigned to a live room
        max_attempts: Number of draws before giving up

    Raises:
        RoomCodesExhausted: every draw collided with a live room
    """
    for _ in range(max_attempts):
        code = str(random.randint(ROOM_CODE_MIN, ROOM_CODE_MAX))
        if not is_taken(code):
            return code
    raise RoomCodesExhausted()
