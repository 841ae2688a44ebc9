"""Stream event model"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
import uuid

from mixflow.database import Base


class Stream(Base):
    """Append-only play log entry"""

    __tablename__ = "streams"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)  # None for anonymous plays
    track_id = Column(String, ForeignKey("tracks.id"), nullable=False, index=True)
    duration_played = Column(Integer, default=0, nullable=False)
    device_type = Column(String, nullable=True)  # Raw User-Agent
    platform = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now())

    # Relationships
    track = relationship("Track", back_populates="streams")

    def __repr__(self):
        return f"<Stream(id={self.id}, track_id={self.track_id}, user_id={self.user_id})>"
