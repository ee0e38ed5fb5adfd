"""Local storage endpoints for development.

Serves the files behind ``LocalStorageService`` public URLs (thumbnails,
preview tracks, scene clips) and accepts raw uploads of source videos.
"""

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import FileResponse

from aalap.api.deps import AppSettings, Storage
from aalap.services.storage_service import LocalStorageService

router = APIRouter()

MEDIA_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def _require_local(settings: AppSettings, storage: Storage) -> LocalStorageService:
    if not settings.use_local_storage or not isinstance(storage, LocalStorageService):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Local storage not enabled",
        )
    return storage


@router.put("/upload/{storage_key:path}")
async def upload_file(storage_key: str, request: Request, settings: AppSettings, storage: Storage):
    """Store the raw request body under ``storage_key``."""
    local = _require_local(settings, storage)

    body = await request.body()
    if not body:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file data provided",
        )

    url = local.upload_file_from_bytes(storage_key, body)
    return {"status": "ok", "storage_key": storage_key, "url": url}


@router.get("/files/{storage_key:path}")
async def get_file(storage_key: str, settings: AppSettings, storage: Storage):
    """Serve a file from local storage."""
    local = _require_local(settings, storage)

    file_path = local.get_file_path(storage_key)
    if not file_path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    return FileResponse(
        path=str(file_path),
        media_type=MEDIA_TYPES.get(file_path.suffix.lower(), "application/octet-stream"),
        filename=file_path.name,
    )
