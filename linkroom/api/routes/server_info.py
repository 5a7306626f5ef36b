# linkroom/api/routes/server_info.py

from fastapi import APIRouter, Depends

from linkroom.core.state import AppState, get_state
from linkroom.models.models import ServerInfo
from linkroom.services.network import get_local_ip

router = APIRouter(prefix="/api")


@router.get("/server-info", response_model=ServerInfo)
async def server_info(app_state: AppState = Depends(get_state)):
    """LAN address other devices should use to reach this server."""
    return ServerInfo(ip=get_local_ip(), port=app_state.settings.PORT)
