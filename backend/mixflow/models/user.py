"""User model"""
from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
import uuid
import enum

from mixflow.database import Base


class UserType(str, enum.Enum):
    """Account type"""
    LISTENER = "LISTENER"
    ARTIST = "ARTIST"
    ADMIN = "ADMIN"


class User(Base):
    """Account referenced by bearer tokens. Credentials live with the auth service."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, nullable=False, unique=True, index=True)
    username = Column(String, nullable=True, unique=True)
    user_type = Column(SQLEnum(UserType), default=UserType.LISTENER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now())

    # Relationships
    artist = relationship("Artist", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', user_type={self.user_type})>"
