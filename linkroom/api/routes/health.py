# linkroom/api/routes/health.py

from fastapi import APIRouter, Depends

from linkroom.core.state import AppState, get_state

router = APIRouter()

@router.get("/health")
async def health(app_state: AppState = Depends(get_state)):
    """
    Health check endpoint.

    Returns current system status, connection counts, and room counts.
    Used by container health probes.

    Returns:
        dict: Status, connection count, room count, rooms with connected devices
    """
    return {
        "status": "healthy",
        "connections": len(app_state.connection_manager.connections),
        "rooms": len(app_state.room_registry),
        "active_rooms_with_members": len(app_state.connection_manager.rooms),
    }
