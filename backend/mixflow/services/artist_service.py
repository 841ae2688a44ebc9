"""Artist service for profile operations"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from mixflow.errors import ConflictError, ForbiddenError, NotFoundError
from mixflow.models.artist import Artist
from mixflow.models.track import Track, TrackStatus
from mixflow.models.user import User, UserType

logger = logging.getLogger(__name__)

AUTO_ARTIST_BIO = "Artist profile created automatically on first upload"
AUTO_ARTIST_GENRES = ["User Upload"]
FALLBACK_STAGE_NAME = "Unknown Artist"


def default_stage_name(user: User) -> str:
    """Username, else the local part of the email, else a fixed fallback"""
    if user.username:
        return user.username
    if user.email and user.email.split("@")[0]:
        return user.email.split("@")[0]
    return FALLBACK_STAGE_NAME


class ArtistService:
    """Service for artist-related operations"""

    def __init__(self, db: Session):
        """
        Initialize artist service

        Args:
            db: Database session
        """
        self.db = db

    def get_artist_by_id(self, artist_id: str) -> Optional[Artist]:
        return self.db.query(Artist).filter(Artist.id == artist_id).first()

    def get_artist_for_user(self, user_id: str) -> Optional[Artist]:
        return self.db.query(Artist).filter(Artist.user_id == user_id).first()

    def create_profile(
        self,
        user: User,
        stage_name: str,
        bio: Optional[str] = None,
        genres: Optional[List[str]] = None
    ) -> Artist:
        """
        Create an artist profile and mark the user as an artist

        Raises:
            ConflictError: the user already has a profile
        """
        if self.get_artist_for_user(user.id):
            raise ConflictError("Artist profile already exists", code="ARTIST_PROFILE_EXISTS")

        artist = Artist(
            user_id=user.id,
            stage_name=stage_name,
            bio=bio or None,
            genres=list(genres or []),
        )
        user.user_type = UserType.ARTIST
        self.db.add(artist)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Artist profile already exists", code="ARTIST_PROFILE_EXISTS")

        self.db.refresh(artist)
        logger.info(f"Created artist profile '{artist.stage_name}' for user {user.id}")
        return artist

    def ensure_artist(self, user: User) -> Artist:
        """
        Return the user's artist profile, creating one if needed

        Safe to call repeatedly and from concurrent requests: when another
        request wins the insert, its row is returned.
        """
        artist = self.get_artist_for_user(user.id)
        if artist:
            return artist

        user_id = user.id
        artist = Artist(
            user_id=user_id,
            stage_name=default_stage_name(user),
            bio=AUTO_ARTIST_BIO,
            genres=list(AUTO_ARTIST_GENRES),
        )
        user.user_type = UserType.ARTIST
        self.db.add(artist)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_artist_for_user(user_id)
            if existing is None:
                raise
            logger.info(f"Artist profile for user {user_id} was created concurrently")
            return existing

        self.db.refresh(artist)
        logger.info(f"Auto-created artist profile '{artist.stage_name}' for user {user_id}")
        return artist

    def get_own_tracks(self, user: User) -> List[Track]:
        """
        All tracks of the caller's artist profile, newest first

        Raises:
            ForbiddenError: the caller has no artist profile
        """
        artist = self.get_artist_for_user(user.id)
        if not artist:
            raise ForbiddenError("Only artists can view their tracks", code="ARTIST_REQUIRED")

        return self.db.query(Track).filter(
            Track.artist_id == artist.id
        ).order_by(Track.created_at.desc()).all()

    def get_public_profile(self, artist_id: str, top_tracks: int = 10) -> dict:
        """
        Public profile with the most streamed approved tracks

        Raises:
            NotFoundError: no such artist
        """
        artist = self.get_artist_by_id(artist_id)
        if not artist:
            raise NotFoundError("Artist not found", code="ARTIST_NOT_FOUND")

        tracks = self.db.query(Track).filter(
            Track.artist_id == artist.id,
            Track.status == TrackStatus.APPROVED,
            Track.is_public == True
        ).order_by(Track.stream_count.desc()).limit(top_tracks).all()

        return {"artist": artist, "tracks": tracks}
