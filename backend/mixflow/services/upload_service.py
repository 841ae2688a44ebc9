"""Upload orchestration: artist provisioning, file storage and track creation"""
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from mixflow.config import Settings
from mixflow.errors import BadRequestError, StorageError
from mixflow.models.track import Track, TrackStatus
from mixflow.models.track_upload import TrackUpload, UploadStatus
from mixflow.models.user import User
from mixflow.services.artist_service import ArtistService
from mixflow.services.file_store import ARTWORK, AUDIO, FileStore
from mixflow.services.ingestion import IngestionValidator, StoredFile, ValidatedUpload
from mixflow.utils.metadata_extractor import track_duration

logger = logging.getLogger(__name__)


class UploadService:
    """Turns a validated upload into stored files plus Track and TrackUpload rows"""

    def __init__(self, db: Session, settings: Settings, store: FileStore):
        """
        Initialize upload service

        Args:
            db: Database session
            settings: Application settings
            store: File store for audio and artwork
        """
        self.db = db
        self.settings = settings
        self.store = store
        self.validator = IngestionValidator(settings, store)
        self.artist_service = ArtistService(db)

    def upload_track(self, user: User, upload: ValidatedUpload) -> Track:
        """
        Create a track from a validated upload

        Args:
            user: Authenticated uploader
            upload: Output of IngestionValidator.validate

        Returns:
            The committed Track

        Raises:
            BadRequestError: no audio file (AUDIO_FILE_REQUIRED)
            StorageError: files or metadata could not be written
        """
        if upload.audio is None:
            raise BadRequestError("Audio file is required", code="AUDIO_FILE_REQUIRED")

        artist = self.artist_service.ensure_artist(user)
        stored = self._store_files(upload)
        audio = next(f for f in stored if f.field == AUDIO)
        artwork = next((f for f in stored if f.field == ARTWORK), None)

        try:
            return self._create_track(user, artist.id, upload, audio, artwork)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save track metadata for {audio.filename}: {e}")
            self._discard(stored)
            raise StorageError("Failed to save track", code="STORAGE_ERROR") from e

    def _store_files(self, upload: ValidatedUpload) -> List[StoredFile]:
        stored: List[StoredFile] = []
        try:
            stored.append(self.validator.store_file(AUDIO, upload.audio))
            if upload.artwork is not None:
                stored.append(self.validator.store_file(ARTWORK, upload.artwork))
        except OSError as e:
            logger.error(f"Failed to write uploaded file: {e}")
            self._discard(stored)
            raise StorageError("Failed to store uploaded file", code="STORAGE_ERROR") from e
        return stored

    def _discard(self, stored: List[StoredFile]) -> None:
        for f in stored:
            self.store.delete(f.url)

    def _create_track(
        self,
        user: User,
        artist_id: str,
        upload: ValidatedUpload,
        audio: StoredFile,
        artwork: Optional[StoredFile]
    ) -> Track:
        """Insert Track and TrackUpload in one transaction"""
        meta = upload.metadata
        track = Track(
            artist_id=artist_id,
            title=meta.title,
            description=meta.description,
            duration=track_duration(audio.path, self.settings.default_track_duration),
            file_url=audio.url,
            artwork_url=artwork.url if artwork else None,
            genre=meta.genre,
            sub_genre=meta.sub_genre,
            bpm=meta.bpm,
            key_signature=meta.key_signature,
            is_explicit=meta.is_explicit,
            tags=meta.tags or None,
            status=TrackStatus.PENDING,
            is_public=meta.is_public,
        )
        self.db.add(track)
        self.db.flush()  # Get the track ID

        self.db.add(TrackUpload(
            user_id=user.id,
            track_id=track.id,
            filename=audio.filename,
            original_name=audio.original_name,
            file_size=audio.size,
            mime_type=audio.mime_type,
            upload_url=audio.url,
            status=UploadStatus.COMPLETED,
        ))
        self.db.commit()
        self.db.refresh(track)

        logger.info(f"Uploaded track '{track.title}' ({track.id}) by artist {artist_id}")
        return track
