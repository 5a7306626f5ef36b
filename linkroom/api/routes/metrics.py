# linkroom/api/routes/metrics.py
from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from linkroom.core.state import AppState, get_state

router = APIRouter()

@router.get("/metrics")
async def get_metrics(app_state: AppState = Depends(get_state)):
    """
    Usage metrics for the running server.

    Room history lives in memory and is never trimmed, so
    `stored_messages` is the number to watch for memory growth.

    Example Response:
        {
            "total_messages": 120,
            "uptime_hours": 1.5,
            "messages_per_second": 0.02,
            "concurrent_connections": 4,
            "total_rooms": 2,
            "empty_rooms_pending_eviction": 1,
            "stored_messages": 120
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - app_state.app_start_time).total_seconds()
    total_messages = app_state.coordinator.message_count

    if uptime_seconds > 0:
        messages_per_second = total_messages / uptime_seconds
    else:
        messages_per_second = 0

    rooms = app_state.room_registry.list_rooms()

    return {
        # Statistics
        "total_messages": total_messages,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "messages_per_second": round(messages_per_second, 2),

        # Capacity
        "concurrent_connections": len(app_state.connection_manager.connections),
        "total_rooms": len(rooms),
        "active_rooms_with_members": len(app_state.connection_manager.rooms),
        "empty_rooms_pending_eviction": sum(1 for r in rooms if r.is_empty),
        "stored_messages": sum(len(r.messages) for r in rooms),
    }
