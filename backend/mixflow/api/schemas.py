"""Response models shared by the track and artist routers"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from mixflow.models.track import TrackStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ArtistSummary(CamelModel):
    id: str
    stage_name: str
    is_verified: bool
    profile_image_url: Optional[str] = None
    user_id: str


class TrackDescriptor(CamelModel):
    """Minimal descriptor returned after an upload"""
    id: str
    title: str
    file_url: str
    artwork_url: Optional[str] = None
    status: TrackStatus
    created_at: Optional[datetime] = None


class TrackResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    duration: int
    file_url: str
    artwork_url: Optional[str] = None
    genre: str
    sub_genre: Optional[str] = None
    bpm: Optional[int] = None
    key_signature: Optional[str] = None
    is_explicit: bool
    tags: Optional[List[str]] = None
    status: TrackStatus
    is_public: bool
    stream_count: int
    download_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TrackWithArtist(TrackResponse):
    artist: ArtistSummary


class ArtistProfile(CamelModel):
    id: str
    stage_name: str
    bio: Optional[str] = None
    genres: List[str] = []
    is_verified: bool
    total_streams: int
    created_at: Optional[datetime] = None
