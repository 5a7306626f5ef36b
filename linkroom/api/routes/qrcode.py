# linkroom/api/routes/qrcode.py

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from linkroom.core.errors import QrGenerationFailed
from linkroom.core.state import AppState, get_state
from linkroom.models.models import QRCodeResponse
from linkroom.services.network import get_local_ip, join_url
from linkroom.services.qr_codes import qr_data_uri

router = APIRouter(prefix="/api")


@router.get("/qrcode/{code}", response_model=QRCodeResponse)
async def get_qrcode(code: str, app_state: AppState = Depends(get_state)):
    """
    QR code for the LAN join URL of a room code.

    The code is not checked against live rooms; a stale code simply
    produces a join link that fails on use.
    """
    url = join_url(get_local_ip(), app_state.settings.PORT, code)
    try:
        qr = await run_in_threadpool(qr_data_uri, url)
    except QrGenerationFailed as e:
        raise HTTPException(status_code=500, detail=e.message)
    return QRCodeResponse(qr=qr, url=url)
