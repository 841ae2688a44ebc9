"""Track model"""
from sqlalchemy import Column, String, Integer, Boolean, JSON, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
import uuid
import enum

from mixflow.database import Base


class TrackStatus(str, enum.Enum):
    """Moderation status"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# Statuses a public track may be served in
SERVABLE_STATUSES = (TrackStatus.PENDING, TrackStatus.APPROVED)


class Track(Base):
    """Track model representing one uploaded piece of audio"""

    __tablename__ = "tracks"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    artist_id = Column(String, ForeignKey("artists.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # Seconds
    file_url = Column(String, nullable=False, unique=True)  # /uploads/audio/<filename>, never changes
    artwork_url = Column(String, nullable=True)
    genre = Column(String, nullable=False, index=True)
    sub_genre = Column(String, nullable=True)
    bpm = Column(Integer, nullable=True)
    key_signature = Column(String, nullable=True)
    is_explicit = Column(Boolean, default=False, nullable=False)
    tags = Column(JSON, nullable=True)
    status = Column(SQLEnum(TrackStatus), default=TrackStatus.PENDING, nullable=False, index=True)
    is_public = Column(Boolean, default=True, nullable=False)
    stream_count = Column(Integer, default=0, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, server_default=func.now())

    # Relationships
    artist = relationship("Artist", back_populates="tracks")
    uploads = relationship("TrackUpload", back_populates="track")
    streams = relationship("Stream", back_populates="track")

    @property
    def is_servable(self) -> bool:
        return self.is_public and self.status in SERVABLE_STATUSES

    def __repr__(self):
        return f"<Track(id={self.id}, title='{self.title}', status={self.status})>"
