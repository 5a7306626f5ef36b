# linkroom/core/errors.py

from __future__ import annotations


class LinkRoomError(Exception):
    """Base class for errors reported back to the client that caused them."""

    message = "Unexpected error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


# Control plane (websocket actions)

class RoomNotFound(LinkRoomError):
    message = "Room not found, check the invite code"


class AlreadyInRoom(LinkRoomError):
    message = "Connection is already in a room"


class RoomCodesExhausted(LinkRoomError):
    message = "No free room code available"


# HTTP surface

class NoFileProvided(LinkRoomError):
    message = "No file uploaded"


class RoomNotFoundForUpload(LinkRoomError):
    message = "Room not found"


class UploadTooLarge(LinkRoomError):
    message = "File too large"


class QrGenerationFailed(LinkRoomError):
    message = "Failed to generate QR code"
