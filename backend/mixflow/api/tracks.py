"""Tracks API endpoints"""
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import AsyncIterator, List, Optional
import logging

from mixflow.api.deps import get_analytics, get_app_settings, get_file_store
from mixflow.api.schemas import CamelModel, TrackDescriptor, TrackWithArtist
from mixflow.config import Settings
from mixflow.database import get_db
from mixflow.models.user import User
from mixflow.security import get_current_user, get_optional_user
from mixflow.services.file_store import FileStore
from mixflow.services.ingestion import IngestionValidator, ValidatedUpload
from mixflow.services.stream_service import AnalyticsRecorder, StreamService, iter_file
from mixflow.services.track_service import TrackService
from mixflow.services.upload_service import UploadService
from mixflow.utils.multipart_form import read_limited_form

router = APIRouter(prefix="/tracks", tags=["tracks"])
logger = logging.getLogger(__name__)


class UploadResponse(CamelModel):
    message: str
    track: TrackDescriptor


class Pagination(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class TrackListResponse(CamelModel):
    message: str
    tracks: List[TrackWithArtist]
    pagination: Pagination


class TrackDetailResponse(CamelModel):
    message: str
    track: TrackWithArtist


class DeletedTrack(CamelModel):
    id: str
    title: str


class DeleteResponse(CamelModel):
    message: str
    deleted_track: DeletedTrack


async def validated_upload(
    request: Request,
    user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    store: FileStore = Depends(get_file_store),
) -> AsyncIterator[ValidatedUpload]:
    """Parse the multipart body and check it before anything is written; temp files close with the request"""
    form = await read_limited_form(request, settings.upload_max_file_size, settings.upload_max_files)
    try:
        yield IngestionValidator(settings, store).validate(form)
    finally:
        await form.close()


@router.post("/upload", status_code=201, response_model=UploadResponse)
def upload_track(
    upload: ValidatedUpload = Depends(validated_upload),
    user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    store: FileStore = Depends(get_file_store),
    db: Session = Depends(get_db)
):
    """Upload an audio file with optional artwork and create a PENDING track"""
    upload_service = UploadService(db, settings, store)
    track = upload_service.upload_track(user, upload)
    return {"message": "Track uploaded successfully", "track": track}


@router.get("", response_model=TrackListResponse)
def list_tracks(
    genre: Optional[str] = Query(None, description="Filter by genre"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: FileStore = Depends(get_file_store),
    db: Session = Depends(get_db)
):
    """List public tracks that still have their audio file"""
    track_service = TrackService(db, store)
    tracks, total = track_service.list_public_tracks(genre=genre, limit=limit, offset=offset)
    return {
        "message": "Tracks retrieved successfully",
        "tracks": tracks,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(tracks) < total,
        },
    }


@router.get("/{track_id}", response_model=TrackDetailResponse)
def get_track(track_id: str, store: FileStore = Depends(get_file_store), db: Session = Depends(get_db)):
    """Get a single public track"""
    track_service = TrackService(db, store)
    track = track_service.get_public_track(track_id)
    return {"message": "Track retrieved successfully", "track": track}


@router.get("/{track_id}/stream")
def stream_track(
    track_id: str,
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    settings: Settings = Depends(get_app_settings),
    store: FileStore = Depends(get_file_store),
    analytics: AnalyticsRecorder = Depends(get_analytics),
    db: Session = Depends(get_db)
):
    """
    Stream a track's audio, honoring a single-range Range header

    The play is counted when the request is accepted, before any byte is sent.
    """
    stream_service = StreamService(db, store)
    plan = stream_service.plan(track_id, request.headers.get("range"))

    analytics.submit_play(
        plan.track.id,
        user_id=user.id if user else None,
        device_type=request.headers.get("user-agent"),
    )

    return StreamingResponse(
        iter_file(plan.path, plan.start, plan.length, settings.stream_chunk_size),
        status_code=plan.status_code,
        headers=plan.headers,
        media_type=plan.headers["Content-Type"],
    )


@router.delete("/{track_id}", response_model=DeleteResponse)
def delete_track(
    track_id: str,
    user: User = Depends(get_current_user),
    store: FileStore = Depends(get_file_store),
    db: Session = Depends(get_db)
):
    """Delete one of the caller's own tracks"""
    track_service = TrackService(db, store)
    deleted = track_service.delete_track(track_id, user)
    return {"message": "Track deleted successfully", "deleted_track": deleted}
