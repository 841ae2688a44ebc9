"""Track service for listing, lookup and deletion"""
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional, Tuple
import logging

from mixflow.errors import ForbiddenError, NotFoundError
from mixflow.models.artist import Artist
from mixflow.models.stream import Stream
from mixflow.models.track import SERVABLE_STATUSES, Track
from mixflow.models.track_upload import TrackUpload
from mixflow.models.user import User
from mixflow.services.file_store import FileStore

logger = logging.getLogger(__name__)


class TrackService:
    """Service for track-related operations"""

    def __init__(self, db: Session, store: FileStore):
        """
        Initialize track service

        Args:
            db: Database session
            store: File store holding the audio and artwork
        """
        self.db = db
        self.store = store

    def get_public_track(self, track_id: str) -> Track:
        """
        Get a track visible to anyone

        Raises:
            NotFoundError: missing, private, or in a status that is not served
        """
        track = self.db.query(Track).options(joinedload(Track.artist)).filter(Track.id == track_id).first()
        if not track or not track.is_servable:
            raise NotFoundError("Track not found", code="TRACK_NOT_FOUND")
        return track

    def list_public_tracks(
        self,
        genre: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[Track], int]:
        """
        List public tracks whose audio file is still on disk, newest first

        Tracks with a missing file are left out of both the page and the total.

        Args:
            genre: Optional exact genre filter
            limit: Page size
            offset: Number of playable tracks to skip

        Returns:
            (tracks on this page, total playable tracks)
        """
        query = self.db.query(Track.id, Track.file_url).filter(
            Track.status.in_(SERVABLE_STATUSES),
            Track.is_public == True
        )
        if genre:
            query = query.filter(Track.genre == genre)

        rows = query.order_by(Track.created_at.desc(), Track.id).all()
        playable_ids = [row.id for row in rows if self.store.exists(row.file_url)]

        page_ids = playable_ids[offset:offset + limit]
        if not page_ids:
            return [], len(playable_ids)

        tracks = self.db.query(Track).options(joinedload(Track.artist)).filter(Track.id.in_(page_ids)).all()
        by_id = {track.id: track for track in tracks}
        return [by_id[track_id] for track_id in page_ids if track_id in by_id], len(playable_ids)

    def delete_track(self, track_id: str, user: User) -> dict:
        """
        Delete a track, its dependent rows and its files

        Only the user owning the track's artist profile may delete it. Rows go
        in one transaction; files are removed afterwards and a missing file is
        not an error.

        Args:
            track_id: Track UUID
            user: Authenticated caller

        Returns:
            id and title of the deleted track

        Raises:
            NotFoundError: TRACK_NOT_FOUND
            ForbiddenError: the caller does not own the track
        """
        track = self.db.query(Track).options(joinedload(Track.artist)).filter(Track.id == track_id).first()
        if not track:
            raise NotFoundError("Track not found", code="TRACK_NOT_FOUND")

        owner_id = self.db.query(Artist.user_id).filter(Artist.id == track.artist_id).scalar()
        if owner_id != user.id:
            logger.warning(f"User {user.id} tried to delete track {track_id} owned by {owner_id}")
            raise ForbiddenError("Unauthorized - You can only delete your own tracks", code="UNAUTHORIZED")

        deleted = {"id": track.id, "title": track.title}
        file_url, artwork_url = track.file_url, track.artwork_url
        try:
            self.db.query(Stream).filter(Stream.track_id == track_id).delete(synchronize_session=False)
            self.db.query(TrackUpload).filter(TrackUpload.track_id == track_id).delete(synchronize_session=False)
            self.db.delete(track)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Deleted track '{deleted['title']}' ({track_id})")

        if not self.store.delete(file_url):
            logger.info(f"Audio file already absent for deleted track {track_id}")
        if artwork_url and not self.store.delete(artwork_url):
            logger.info(f"Artwork file already absent for deleted track {track_id}")

        return deleted
