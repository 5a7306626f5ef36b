# linkroom/api/routes/upload.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from linkroom.core.errors import NoFileProvided, RoomNotFoundForUpload, UploadTooLarge
from linkroom.core.state import AppState, get_state
from linkroom.models.models import UploadResponse

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)

# ============================================================================
# FILE UPLOAD ENDPOINT
# ============================================================================

@router.post("/upload/{room_id}", response_model=UploadResponse)
async def upload_file(
    room_id: str,
    file: Optional[UploadFile] = File(None),
    app_state: AppState = Depends(get_state),
):
    """
    Store a file in the room's upload folder.

    The client announces the result to the room afterwards with a
    send-file action; this endpoint never broadcasts.

    Args:
        room_id: Room the file belongs to
        file: Multipart field "file"

    Returns:
        UploadResponse: id, originalName, filename, size, mimetype, url, uploadedAt

    Raises:
        HTTPException: 400 no file, 404 unknown or evicted room, 413 file too large
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail=NoFileProvided.message)

    if app_state.room_registry.get_room(room_id) is None:
        raise HTTPException(status_code=404, detail=RoomNotFoundForUpload.message)

    storage = app_state.upload_storage
    try:
        filename, size = await run_in_threadpool(storage.save, room_id, file.filename, file.file)
    except UploadTooLarge as e:
        raise HTTPException(status_code=413, detail=e.message)
    finally:
        await file.close()

    # The room may have been evicted while the file was being written
    if app_state.room_registry.get_room(room_id) is None:
        await run_in_threadpool(storage.remove_room, room_id)
        logger.info("Discarded upload %s, room %s was evicted", filename, room_id)
        raise HTTPException(status_code=404, detail=RoomNotFoundForUpload.message)

    return UploadResponse(
        original_name=file.filename,
        filename=filename,
        size=size,
        mimetype=file.content_type or "application/octet-stream",
        url=storage.url_for(room_id, filename),
    )
