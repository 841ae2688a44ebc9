"""Read-only serving of uploaded files (artwork previews and raw audio)"""
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
import logging

from mixflow.api.deps import get_file_store
from mixflow.errors import NotFoundError
from mixflow.services.file_store import FileStore

router = APIRouter(tags=["media"])
logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.webp': 'image/webp',
    '.mp3': 'audio/mpeg',
    '.wav': 'audio/wav',
    '.flac': 'audio/flac',
    '.aac': 'audio/aac',
    '.m4a': 'audio/mp4',
    '.webm': 'audio/webm',
    '.ogg': 'audio/ogg',
    '.wma': 'audio/x-ms-wma',
}


@router.get("/{file_path:path}")
def serve_upload(file_path: str, store: FileStore = Depends(get_file_store)):
    """
    Serve a stored upload

    Args:
        file_path: Path relative to the upload root, e.g. artwork/<filename>
    """
    full_path = store.resolve_relative(file_path)

    if full_path is None or not full_path.is_file():
        logger.warning(f"Media file not found: {file_path}")
        raise NotFoundError("Media file not found", code="FILE_NOT_FOUND")

    media_type = MEDIA_TYPES.get(full_path.suffix.lower(), 'application/octet-stream')

    return FileResponse(
        path=str(full_path),
        media_type=media_type,
        filename=full_path.name,
        content_disposition_type="inline"
    )
