"""Database models"""
from mixflow.models.user import User, UserType
from mixflow.models.artist import Artist
from mixflow.models.track import Track, TrackStatus, SERVABLE_STATUSES
from mixflow.models.track_upload import TrackUpload, UploadStatus
from mixflow.models.stream import Stream

__all__ = [
    "User",
    "UserType",
    "Artist",
    "Track",
    "TrackStatus",
    "SERVABLE_STATUSES",
    "TrackUpload",
    "UploadStatus",
    "Stream",
]
