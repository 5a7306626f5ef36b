#!/usr/bin/env python3
"""
Unit tests for the room coordinator: create/join/send/disconnect and
grace-period eviction.
"""

import asyncio
import unittest
from unittest.mock import Mock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from linkroom.core.errors import AlreadyInRoom, RoomNotFound
from linkroom.models.models import (
    CreateRoomRequest,
    JoinRoomRequest,
    SendClipboardRequest,
    SendFileRequest,
    SendTextRequest,
)
from linkroom.services.room_coordinator import ConnectionSession, RoomCoordinator
from linkroom.services.room_registry import RoomRegistry

IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)"
WINDOWS = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"

GRACE = 0.05


class FakeChannels:
    """Records room channel membership and every published event."""

    def __init__(self, log):
        self.log = log
        self.rooms = {}

    def join_room(self, connection_id, room_id):
        self.rooms.setdefault(room_id, set()).add(connection_id)

    def leave_room(self, connection_id, room_id):
        self.rooms.get(room_id, set()).discard(connection_id)

    def publish(self, room_id, event):
        self.log.append(("publish", room_id, event))


class CoordinatorTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.log = []
        self.registry = RoomRegistry()
        self.channels = FakeChannels(self.log)
        self.storage = Mock()
        self.coordinator = RoomCoordinator(
            self.registry,
            channels=self.channels,
            publisher=self.channels,
            storage=self.storage,
            grace_period=GRACE,
        )

    async def asyncTearDown(self):
        await self.coordinator.close()

    def ack(self, payload):
        self.log.append(("ack", payload))

    def published(self):
        return [entry[2] for entry in self.log if entry[0] == "publish"]

    def create(self, connection_id="conn-a", ua=WINDOWS, **data):
        session = ConnectionSession(connection_id, user_agent=ua)
        room = self.coordinator.create_room(session, CreateRoomRequest(**data), self.ack)
        return session, room

    def join(self, code, connection_id="conn-b", ua=IPHONE, **data):
        session = ConnectionSession(connection_id, user_agent=ua)
        room = self.coordinator.join_room(session, JoinRoomRequest(code=code, **data), self.ack)
        return session, room


class TestCreateRoom(CoordinatorTestCase):

    async def test_create_room_snapshot(self):
        session, room = self.create(room_name="Team", device_name="Laptop")

        self.assertTrue(session.is_attached)
        self.assertEqual(session.room_id, room.id)
        self.assertEqual(session.device_name, "Laptop")

        kind, ack = self.log[0]
        self.assertEqual(kind, "ack")
        self.assertTrue(ack["success"])
        snapshot = ack["room"]
        self.assertEqual(snapshot["name"], "Team")
        self.assertEqual(snapshot["code"], room.code)
        self.assertEqual(len(snapshot["devices"]), 1)
        self.assertTrue(snapshot["devices"][0]["isCreator"])
        self.assertEqual(snapshot["devices"][0]["os"], "Windows")
        self.assertEqual(len(snapshot["messages"]), 1)
        self.assertEqual(snapshot["messages"][0]["type"], "system")

    async def test_ack_precedes_broadcast(self):
        self.create(room_name="Team", device_name="Laptop")
        kinds = [entry[0] for entry in self.log]
        self.assertEqual(kinds, ["ack", "publish"])
        event = self.published()[0]
        self.assertEqual(event["type"], "new-message")
        self.assertEqual(event["message"]["content"], "Laptop created the workspace")

    async def test_defaults_for_missing_names(self):
        session, room = self.create(ua=IPHONE)
        self.assertEqual(room.name, "My Workspace")
        self.assertEqual(session.device_name, "iOS Device")

    async def test_empty_names_fall_back_to_defaults(self):
        session, room = self.create(room_name="", device_name="")
        self.assertEqual(room.name, "My Workspace")
        self.assertEqual(session.device_name, "Windows Device")

    async def test_creator_is_subscribed(self):
        _, room = self.create()
        self.assertEqual(self.channels.rooms[room.id], {"conn-a"})

    async def test_create_while_attached_is_rejected(self):
        session, room = self.create()
        with self.assertRaises(AlreadyInRoom):
            self.coordinator.create_room(session, CreateRoomRequest(), self.ack)
        self.assertEqual(len(self.registry), 1)
        self.assertEqual(session.room_id, room.id)


class TestJoinRoom(CoordinatorTestCase):

    async def test_join_with_unknown_code(self):
        session = ConnectionSession("conn-b")
        with self.assertRaises(RoomNotFound):
            self.coordinator.join_room(session, JoinRoomRequest(code="000000"), self.ack)
        self.assertFalse(session.is_attached)
        self.assertEqual(self.log, [])

    async def test_join_broadcasts_message_then_device_update(self):
        _, room = self.create(device_name="Laptop")
        self.log.clear()

        session, joined = self.join(room.code, device_name="Phone")
        self.assertIs(joined, room)
        self.assertEqual(session.device_name, "Phone")

        kinds = [entry[0] for entry in self.log]
        self.assertEqual(kinds, ["ack", "publish", "publish"])

        snapshot = self.log[0][1]["room"]
        self.assertEqual([d["name"] for d in snapshot["devices"]], ["Laptop", "Phone"])
        self.assertFalse(snapshot["devices"][1]["isCreator"])
        self.assertEqual(snapshot["devices"][1]["type"], "phone")

        message_event, device_event = self.published()
        self.assertEqual(message_event["type"], "new-message")
        self.assertEqual(message_event["message"]["content"], "Phone joined the workspace")
        self.assertEqual(device_event["type"], "device-update")
        self.assertEqual(len(device_event["devices"]), 2)
        self.assertEqual(self.channels.rooms[room.id], {"conn-a", "conn-b"})

    async def test_join_with_duplicate_name(self):
        _, room = self.create(device_name="Laptop")
        session, _ = self.join(room.code, device_name="Laptop")
        self.assertEqual(session.device_name, "Laptop (2)")

    async def test_join_while_attached_is_rejected(self):
        _, room = self.create()
        _, other = self.create(connection_id="conn-x")
        session, _ = self.join(room.code)
        with self.assertRaises(AlreadyInRoom):
            self.coordinator.join_room(session, JoinRoomRequest(code=other.code), self.ack)
        self.assertEqual(room.device_count, 2)
        self.assertEqual(other.device_count, 1)


class TestMessages(CoordinatorTestCase):

    async def test_send_text(self):
        _, room = self.create(device_name="Laptop")
        session, _ = self.join(room.code, device_name="Phone")
        self.log.clear()

        message = self.coordinator.send_text(session, SendTextRequest(content="hello"))

        self.assertEqual(room.messages[-1], message)
        event = self.published()[0]
        self.assertEqual(event["message"]["type"], "text")
        self.assertEqual(event["message"]["content"], "hello")
        self.assertEqual(event["message"]["sender"], "Phone")
        self.assertEqual(event["message"]["senderId"], "conn-b")
        self.assertEqual(self.log[0][1], room.id)

    async def test_send_clipboard(self):
        session, room = self.create(device_name="Laptop")
        self.log.clear()
        self.coordinator.send_clipboard(session, SendClipboardRequest(content="copied"))
        event = self.published()[0]
        self.assertEqual(event["message"]["type"], "clipboard")
        self.assertEqual(event["message"]["content"], "copied")

    async def test_send_file(self):
        session, room = self.create(device_name="Laptop")
        self.log.clear()
        request = SendFileRequest(
            original_name="report.pdf",
            filename="1700000000000-42-report.pdf",
            size=2048,
            mimetype="application/pdf",
            url=f"/uploads/{room.id}/1700000000000-42-report.pdf",
        )
        self.coordinator.send_file(session, request)

        event = self.published()[0]
        self.assertEqual(event["message"]["type"], "file")
        self.assertEqual(event["message"]["file"]["originalName"], "report.pdf")
        self.assertEqual(event["message"]["file"]["size"], 2048)
        self.assertEqual(room.messages[-1].file.url, request.url)

    async def test_send_while_unattached_is_dropped(self):
        session = ConnectionSession("conn-z")
        self.assertIsNone(self.coordinator.send_text(session, SendTextRequest(content="hi")))
        self.assertIsNone(self.coordinator.send_clipboard(session, SendClipboardRequest(content="hi")))
        self.assertEqual(self.log, [])

    async def test_send_to_deleted_room_is_dropped(self):
        session, room = self.create()
        self.registry.delete_room(room.id)
        self.log.clear()
        self.assertIsNone(self.coordinator.send_text(session, SendTextRequest(content="hi")))
        self.assertEqual(self.log, [])

    async def test_broadcasts_follow_log_order(self):
        session_a, room = self.create(device_name="Laptop")
        session_b, _ = self.join(room.code, device_name="Phone")
        for i in range(10):
            sender = session_a if i % 2 else session_b
            self.coordinator.send_text(sender, SendTextRequest(content=str(i)))

        broadcast_ids = [e["message"]["id"] for e in self.published() if e["type"] == "new-message"]
        self.assertEqual(broadcast_ids, [m.id for m in room.messages])
        self.assertEqual(self.coordinator.message_count, len(room.messages))


class TestDisconnect(CoordinatorTestCase):

    async def test_disconnect_notifies_remaining_members(self):
        _, room = self.create(device_name="Laptop")
        session_b, _ = self.join(room.code, device_name="Phone")
        self.log.clear()

        self.coordinator.disconnect(session_b)

        self.assertFalse(session_b.is_attached)
        message_event, device_event = self.published()
        self.assertEqual(message_event["message"]["content"], "Phone left the workspace")
        self.assertEqual([d["name"] for d in device_event["devices"]], ["Laptop"])
        self.assertEqual(self.channels.rooms[room.id], {"conn-a"})
        self.assertEqual(len(self.coordinator._evictions), 0)

    async def test_disconnect_unattached_is_noop(self):
        self.coordinator.disconnect(ConnectionSession("conn-z"))
        self.assertEqual(self.log, [])

    async def test_empty_room_is_evicted_after_grace(self):
        session, room = self.create()
        self.coordinator.disconnect(session)

        # Still joinable right after the last device left
        self.assertIs(self.registry.get_room_by_code(room.code), room)

        await asyncio.sleep(GRACE * 4)

        self.assertIsNone(self.registry.get_room(room.id))
        self.assertIsNone(self.registry.get_room_by_code(room.code))
        self.storage.remove_room.assert_called_once_with(room.id)

        with self.assertRaises(RoomNotFound):
            self.join(room.code)

    async def test_rejoin_during_grace_keeps_room(self):
        session, room = self.create(device_name="Laptop")
        self.coordinator.disconnect(session)

        rejoined, _ = self.join(room.code, connection_id="conn-a2", device_name="Laptop")
        self.assertEqual(rejoined.device_name, "Laptop")

        await asyncio.sleep(GRACE * 4)

        self.assertIs(self.registry.get_room(room.id), room)
        self.storage.remove_room.assert_not_called()

    async def test_leave_rejoin_leave_restarts_grace(self):
        self.coordinator.grace_period = grace = 0.2
        session_a, room = self.create(device_name="Laptop")
        self.coordinator.disconnect(session_a)

        await asyncio.sleep(grace * 0.5)
        session_b, _ = self.join(room.code, device_name="Laptop")
        await asyncio.sleep(grace * 0.4)
        self.coordinator.disconnect(session_b)

        # The first timer has fired by now but the room emptied again since
        await asyncio.sleep(grace * 0.3)
        self.assertIs(self.registry.get_room(room.id), room)
        self.storage.remove_room.assert_not_called()

        await asyncio.sleep(grace * 1.5)
        self.assertIsNone(self.registry.get_room(room.id))
        self.storage.remove_room.assert_called_once_with(room.id)

    async def test_stale_eviction_timer_is_void(self):
        session, room = self.create()
        self.coordinator.disconnect(session)
        stale = room.vacancy

        rejoined, _ = self.join(room.code, connection_id="conn-a2")
        self.coordinator.disconnect(rejoined)
        self.assertEqual(room.vacancy, stale + 1)
        # Drop the scheduled timers and drive them by hand
        await self.coordinator.close()

        self.assertFalse(await self.coordinator._evict_after_grace(room.id, stale))
        self.assertIs(self.registry.get_room(room.id), room)
        self.assertTrue(await self.coordinator._evict_after_grace(room.id, room.vacancy))
        self.assertIsNone(self.registry.get_room(room.id))

    async def test_evict_if_empty_rereads_state(self):
        session, room = self.create()
        self.assertFalse(await self.coordinator.evict_if_empty(room.id))

        self.coordinator.disconnect(session)
        self.assertTrue(await self.coordinator.evict_if_empty(room.id))
        # Second check (e.g. the scheduled one) finds nothing to do
        self.assertFalse(await self.coordinator.evict_if_empty(room.id))
        self.storage.remove_room.assert_called_once_with(room.id)

    async def test_manual_delete_races_with_eviction(self):
        session, room = self.create()
        self.coordinator.disconnect(session)
        self.assertTrue(self.registry.delete_room(room.id))

        await asyncio.sleep(GRACE * 4)

        self.assertEqual(self.registry.rooms, {})
        self.assertEqual(self.registry.codes, {})
        self.storage.remove_room.assert_not_called()

    async def test_close_cancels_pending_evictions(self):
        self.coordinator.grace_period = 60
        session, room = self.create()
        self.coordinator.disconnect(session)
        self.assertEqual(len(self.coordinator._evictions), 1)

        await self.coordinator.close()
        await asyncio.sleep(0)

        self.assertEqual(len(self.coordinator._evictions), 0)
        self.assertIs(self.registry.get_room(room.id), room)

    async def test_disconnect_after_close_schedules_nothing(self):
        session, room = self.create()
        await self.coordinator.close()

        self.coordinator.disconnect(session)

        self.assertTrue(room.is_empty)
        self.assertEqual(len(self.coordinator._evictions), 0)
        self.assertIsNone(self.coordinator.schedule_eviction(room.id))


if __name__ == "__main__":
    unittest.main()
