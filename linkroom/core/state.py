# linkroom/core/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, WebSocket

from linkroom.core.config import Settings
from linkroom.services.connection_manager import ConnectionManager
from linkroom.services.redis_pub_sub import AsyncRedisPubSubService
from linkroom.services.room_coordinator import RoomCoordinator
from linkroom.services.room_registry import RoomRegistry
from linkroom.services.upload_storage import UploadStorage


@dataclass
class AppState:
    """Everything one running server owns. Built once per application."""

    settings: Settings
    room_registry: RoomRegistry
    connection_manager: ConnectionManager
    upload_storage: UploadStorage
    coordinator: RoomCoordinator
    redis_service: Optional[AsyncRedisPubSubService] = None
    app_start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def build_state(settings: Settings) -> AppState:
    room_registry = RoomRegistry()
    connection_manager = ConnectionManager()
    upload_storage = UploadStorage(settings.UPLOAD_DIR, max_bytes=settings.MAX_UPLOAD_BYTES)

    redis_service = None
    publisher = connection_manager
    if settings.PUB_SUB_SERVICE == "redis":
        redis_service = AsyncRedisPubSubService(
            connection_manager,
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            access_key=settings.REDIS_ACCESS_KEY,
            ssl=settings.REDIS_SSL,
        )
        publisher = redis_service

    coordinator = RoomCoordinator(
        room_registry,
        channels=connection_manager,
        publisher=publisher,
        storage=upload_storage,
        grace_period=settings.ROOM_GRACE_PERIOD_SECONDS,
        default_room_name=settings.DEFAULT_ROOM_NAME,
    )
    return AppState(
        settings=settings,
        room_registry=room_registry,
        connection_manager=connection_manager,
        upload_storage=upload_storage,
        coordinator=coordinator,
        redis_service=redis_service,
    )


def get_state(request: Request) -> AppState:
    return request.app.state.linkroom


def get_ws_state(websocket: WebSocket) -> AppState:
    return websocket.app.state.linkroom
