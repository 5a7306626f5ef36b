# linkroom/models/models.py
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class DeviceType(str, Enum):
    PHONE = "phone"
    DESKTOP = "desktop"


class MessageType(str, Enum):
    SYSTEM = "system"
    TEXT = "text"
    FILE = "file"
    CLIPBOARD = "clipboard"


# ============================================================================
# ROOM ENTITIES
# ============================================================================

class Device(WireModel):
    id: str
    name: str
    os: str
    type: DeviceType
    joined_at: str = Field(default_factory=utc_now)
    is_creator: bool = False


class FileInfo(WireModel):
    original_name: str
    filename: str
    size: int = Field(ge=0)
    mimetype: str
    url: str


class Message(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_id)
    type: MessageType
    content: Optional[str] = None
    file: Optional[FileInfo] = None
    sender: Optional[str] = None
    sender_id: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(type=MessageType.SYSTEM, content=content)

    @classmethod
    def text(cls, content: str, sender: str, sender_id: str) -> "Message":
        return cls(type=MessageType.TEXT, content=content, sender=sender, sender_id=sender_id)

    @classmethod
    def clipboard(cls, content: str, sender: str, sender_id: str) -> "Message":
        return cls(type=MessageType.CLIPBOARD, content=content, sender=sender, sender_id=sender_id)

    @classmethod
    def file_reference(cls, file: FileInfo, sender: str, sender_id: str) -> "Message":
        return cls(type=MessageType.FILE, file=file, sender=sender, sender_id=sender_id)


class RoomSnapshot(WireModel):
    id: str
    code: str
    name: str
    devices: List[Device]
    messages: List[Message]


# ============================================================================
# CONTROL PLANE REQUESTS
# ============================================================================

class CreateRoomRequest(WireModel):
    room_name: Optional[str] = None
    device_name: Optional[str] = None


class JoinRoomRequest(WireModel):
    code: str
    device_name: Optional[str] = None


class SendTextRequest(WireModel):
    content: str


class SendClipboardRequest(WireModel):
    content: str


class SendFileRequest(FileInfo):
    pass


# ============================================================================
# HTTP RESPONSES
# ============================================================================

class UploadResponse(FileInfo):
    id: str = Field(default_factory=new_id)
    uploaded_at: str = Field(default_factory=utc_now)


class QRCodeResponse(BaseModel):
    qr: str
    url: str


class ServerInfo(BaseModel):
    ip: str
    port: int
