# linkroom/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "LinkRoom - share text, clipboard and files across devices on your LAN",
        "version": "1.0",
        "features": ["join_codes", "qr_join", "text", "clipboard", "files", "ephemeral_rooms"],
        "endpoints": {
            "websocket": "/ws",
            "upload": "/api/upload/{room_id}",
            "qrcode": "/api/qrcode/{code}",
            "server_info": "/api/server-info",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
