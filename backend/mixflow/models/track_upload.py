"""Track upload model"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
import uuid
import enum

from mixflow.database import Base


class UploadStatus(str, enum.Enum):
    """Upload status"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TrackUpload(Base):
    """One row per raw ingested audio file"""

    __tablename__ = "track_uploads"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    track_id = Column(String, ForeignKey("tracks.id"), nullable=False, index=True)
    filename = Column(String, nullable=False)  # Generated name on disk
    original_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=True)
    upload_url = Column(String, nullable=False)
    status = Column(SQLEnum(UploadStatus), default=UploadStatus.COMPLETED, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now())

    # Relationships
    track = relationship("Track", back_populates="uploads")

    def __repr__(self):
        return f"<TrackUpload(id={self.id}, filename='{self.filename}', status={self.status})>"
