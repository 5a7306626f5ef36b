# linkroom/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from linkroom.core.errors import LinkRoomError
from linkroom.core.state import AppState, get_ws_state
from linkroom.models.models import (
    CreateRoomRequest,
    JoinRoomRequest,
    SendClipboardRequest,
    SendFileRequest,
    SendTextRequest,
)
from linkroom.services.room_coordinator import ConnectionSession

logger = logging.getLogger(__name__)

router = APIRouter()

# Actions answered with an ack frame
ACK_ACTIONS = {
    "create-room": CreateRoomRequest,
    "join-room": JoinRoomRequest,
}

# Fire-and-forget actions, results arrive as broadcasts
SEND_ACTIONS = {
    "send-text": SendTextRequest,
    "send-file": SendFileRequest,
    "send-clipboard": SendClipboardRequest,
}

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, app_state: AppState = Depends(get_ws_state)):
    """
    WebSocket endpoint for the room control plane.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Every frame is {"action": "...", "requestId": "...", "data": {...}}.
    requestId is optional and echoed back in the ack.

    Create Room:
        {"action": "create-room", "data": {"roomName": "Team", "deviceName": "Laptop"}}
        Response: {"type": "ack", "action": "create-room", "success": true,
                   "room": {"id", "code", "name", "devices": [...], "messages": [...]}}

    Join Room:
        {"action": "join-room", "data": {"code": "123456", "deviceName": "Phone"}}
        Response: {"type": "ack", "action": "join-room", "success": true, "room": {...}}
               or {"type": "ack", "action": "join-room", "success": false, "error": "..."}

    Send Text / Clipboard:
        {"action": "send-text", "data": {"content": "hello"}}
        {"action": "send-clipboard", "data": {"content": "..."}}

    Send File (after POST /api/upload/{room_id}):
        {"action": "send-file", "data": {"originalName", "filename", "size", "mimetype", "url"}}

    Server -> Client Messages:
    -------------------------
    New Message:
        {"type": "new-message", "message": {"id", "type", "content"|"file", "sender", "senderId", "timestamp"}}

    Device List Updated:
        {"type": "device-update", "devices": [...]}

    Error:
        {"type": "error", "message": "..."}

    Lifecycle:
    ==========
    1. Client connects; the User-Agent header identifies the device
    2. Client sends create-room or join-room (once per connection)
    3. Client sends messages and receives the room's broadcasts
    4. On disconnect the device leaves the room; an empty room is evicted
       after the grace period
    """
    connections = app_state.connection_manager
    coordinator = app_state.coordinator

    connection = await connections.connect(websocket)
    session = ConnectionSession(connection.id, user_agent=connection.user_agent)

    try:
        while True:
            raw = await websocket.receive_text()

            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                connections.send(session.connection_id, {"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(frame, dict):
                connections.send(session.connection_id, {"type": "error", "message": "Invalid frame"})
                continue

            handle_frame(app_state, session, frame)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error on %s: %s", session.connection_id, e)
    finally:
        coordinator.disconnect(session)
        connections.disconnect(session.connection_id)


def handle_frame(app_state: AppState, session: ConnectionSession, frame: dict) -> None:
    """Dispatch one decoded client frame. Never raises for client mistakes."""
    connections = app_state.connection_manager
    coordinator = app_state.coordinator

    action = frame.get("action")
    data = frame.get("data") or {}
    logger.debug("Websocket input from %s: action=%s", session.connection_id, action)

    if not isinstance(action, str):
        connections.send(
            session.connection_id,
            {"type": "error", "message": f"Unknown action: {action}"},
        )
        return

    if not isinstance(data, dict):
        connections.send(session.connection_id, {"type": "error", "message": "Invalid frame"})
        return

    if action in ACK_ACTIONS:
        ack_base = {"type": "ack", "action": action}
        if frame.get("requestId") is not None:
            ack_base["requestId"] = frame["requestId"]

        def ack(payload: dict) -> None:
            connections.send(session.connection_id, {**ack_base, **payload})

        try:
            request = ACK_ACTIONS[action].model_validate(data)
            if action == "create-room":
                coordinator.create_room(session, request, ack)
            else:
                coordinator.join_room(session, request, ack)
        except ValidationError as e:
            ack({"success": False, "error": f"Invalid request: {e.error_count()} error(s)"})
        except LinkRoomError as e:
            ack({"success": False, "error": e.message})

    elif action in SEND_ACTIONS:
        try:
            request = SEND_ACTIONS[action].model_validate(data)
        except ValidationError as e:
            connections.send(
                session.connection_id,
                {"type": "error", "message": f"Invalid {action} payload: {e.error_count()} error(s)"},
            )
            return

        if action == "send-text":
            coordinator.send_text(session, request)
        elif action == "send-clipboard":
            coordinator.send_clipboard(session, request)
        else:
            coordinator.send_file(session, request)

    else:
        connections.send(
            session.connection_id,
            {"type": "error", "message": f"Unknown action: {action}"},
        )
