# linkroom/services/upload_storage.py

from __future__ import annotations

import logging
import os
import random
import shutil
import time
from typing import BinaryIO

from linkroom.core.errors import UploadTooLarge

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
URL_PREFIX = "/uploads"


class UploadStorage:
    """
    Per-room upload folders under a single root.

    Layout: <root>/<room_id>/<ms>-<random>-<original name>. A room's folder
    is removed wholesale when the room is evicted. All methods do blocking
    file I/O and are meant to be run off the event loop.
    """

    def __init__(self, root: str, max_bytes: int) -> None:
        self.root = os.path.abspath(root)
        self.max_bytes = max_bytes

    def ensure_root(self) -> None:
        os.makedirs(self.root, exist_ok=True)

    def room_dir(self, room_id: str) -> str:
        # room ids are uuids; basename keeps a crafted id inside the root
        return os.path.join(self.root, os.path.basename(room_id))

    @staticmethod
    def stored_name(original_name: str) -> str:
        safe = os.path.basename(original_name.replace("\\", "/")) or "file"
        prefix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return f"{prefix}-{safe}"

    @staticmethod
    def url_for(room_id: str, filename: str) -> str:
        return f"{URL_PREFIX}/{room_id}/{filename}"

    def save(self, room_id: str, original_name: str, source: BinaryIO) -> tuple[str, int]:
        """
        Copy an uploaded stream into the room folder.

        Returns:
            (stored filename, size in bytes)

        Raises:
            UploadTooLarge: the stream exceeded max_bytes; nothing is kept
        """
        directory = self.room_dir(room_id)
        os.makedirs(directory, exist_ok=True)
        filename = self.stored_name(original_name)
        path = os.path.join(directory, filename)

        size = 0
        try:
            with open(path, "wb") as out:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise UploadTooLarge()
                    out.write(chunk)
        except BaseException:
            if os.path.exists(path):
                os.remove(path)
            raise

        logger.info("📁 Stored upload %s (%d bytes) for room %s", filename, size, room_id)
        return filename, size

    def remove_room(self, room_id: str) -> bool:
        directory = self.room_dir(room_id)
        if not os.path.isdir(directory):
            return False
        shutil.rmtree(directory, ignore_errors=True)
        logger.info("🧹 Removed uploads for room %s", room_id)
        return True
