"""Artist model"""
from sqlalchemy import Column, String, Integer, Boolean, JSON, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
import uuid

from mixflow.database import Base


class Artist(Base):
    """Public content-creator profile, one per user"""

    __tablename__ = "artists"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    stage_name = Column(String, nullable=False)
    bio = Column(Text, nullable=True)
    genres = Column(JSON, default=list)
    profile_image_url = Column(String, nullable=True)
    cover_image_url = Column(String, nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    total_streams = Column(Integer, default=0, nullable=False)  # Rolled up elsewhere
    created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="artist")
    tracks = relationship("Track", back_populates="artist")

    def __repr__(self):
        return f"<Artist(id={self.id}, stage_name='{self.stage_name}')>"
