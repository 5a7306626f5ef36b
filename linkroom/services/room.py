# linkroom/services/room.py

from __future__ import annotations

from typing import Dict, List, Optional

from linkroom.models.models import Device, Message, RoomSnapshot, utc_now
from linkroom.services.device_info import DeviceInfo


class Room:
    """
    A live collaboration room.

    Attributes:
        devices: connection_id -> Device, in join order
        messages: append-only history as observed by the server

    Devices are only added or removed by join/leave. Messages are never
    edited or dropped, so the history grows for the lifetime of the room.

    `vacancy` counts how many times the last device has left. An eviction
    timer remembers the value it was scheduled for and only fires if the
    room has stayed empty since.
    """

    def __init__(self, room_id: str, code: str, name: str, creator_id: str) -> None:
        self.id = room_id
        self.code = code
        self.name = name
        self.creator_id = creator_id
        self.created_at = utc_now()
        self.devices: Dict[str, Device] = {}
        self.messages: List[Message] = []
        self.vacancy = 0

    def __repr__(self) -> str:
        return f"Room(id={self.id!r}, code={self.code!r}, name={self.name!r}, devices={len(self.devices)})"

    @property
    def device_count(self) -> int:
        return len(self.devices)

    @property
    def is_empty(self) -> bool:
        return not self.devices

    def add_device(
        self,
        connection_id: str,
        name: str,
        info: DeviceInfo,
        is_creator: bool = False,
    ) -> Device:
        """
        Add a member, disambiguating its display name.

        A name already used in the room becomes "<name> (N)" where N is the
        member count plus one before insertion. The suffixed name is not
        checked again.
        """
        if any(d.name == name for d in self.devices.values()):
            name = f"{name} ({len(self.devices) + 1})"

        device = Device(
            id=connection_id,
            name=name,
            os=info.os_name,
            type=info.device_type,
            is_creator=is_creator,
        )
        self.devices[connection_id] = device
        return device

    def remove_device(self, connection_id: str) -> Optional[Device]:
        device = self.devices.pop(connection_id, None)
        if device is not None and not self.devices:
            self.vacancy += 1
        return device

    def append_message(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    def device_list(self) -> List[Device]:
        return list(self.devices.values())

    def message_history(self) -> List[Message]:
        return list(self.messages)

    def snapshot(self) -> RoomSnapshot:
        """Initial state handed to a client that just created or joined."""
        return RoomSnapshot(
            id=self.id,
            code=self.code,
            name=self.name,
            devices=self.device_list(),
            messages=self.message_history(),
        )
