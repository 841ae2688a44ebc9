"""Artist API endpoints"""
from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.orm import Session
from typing import List, Optional

from mixflow.api.schemas import ArtistProfile, CamelModel, TrackResponse
from mixflow.database import get_db
from mixflow.models.user import User
from mixflow.security import get_current_user
from mixflow.services.artist_service import ArtistService

router = APIRouter(prefix="/artist", tags=["artist"])


class CreateArtistRequest(CamelModel):
    stage_name: str = Field(min_length=1)
    bio: Optional[str] = None
    genres: List[str] = Field(default_factory=list, max_length=10)


class ArtistCreatedResponse(CamelModel):
    message: str
    artist: ArtistProfile


class ArtistTracksResponse(CamelModel):
    message: str
    tracks: List[TrackResponse]
    total: int


class TopTrack(CamelModel):
    id: str
    title: str
    artwork_url: Optional[str] = None
    duration: int
    stream_count: int


class PublicArtistProfile(ArtistProfile):
    profile_image_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    tracks: List[TopTrack]


class PublicArtistResponse(CamelModel):
    message: str
    artist: PublicArtistProfile


@router.post("/create", status_code=201, response_model=ArtistCreatedResponse)
def create_artist_profile(
    request: CreateArtistRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create the caller's artist profile"""
    artist_service = ArtistService(db)
    artist = artist_service.create_profile(
        user,
        stage_name=request.stage_name.strip(),
        bio=request.bio,
        genres=request.genres
    )
    return {"message": "Artist profile created successfully", "artist": artist}


@router.get("/tracks", response_model=ArtistTracksResponse)
def get_own_tracks(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List every track of the caller's artist profile, whatever its status"""
    artist_service = ArtistService(db)
    tracks = artist_service.get_own_tracks(user)
    return {"message": "Tracks retrieved successfully", "tracks": tracks, "total": len(tracks)}


@router.get("/{artist_id}", response_model=PublicArtistResponse)
def get_artist_profile(artist_id: str, db: Session = Depends(get_db)):
    """Get a public artist profile with its most streamed approved tracks"""
    artist_service = ArtistService(db)
    profile = artist_service.get_public_profile(artist_id)
    artist = profile["artist"]
    return {
        "message": "Artist profile retrieved successfully",
        "artist": {
            **ArtistProfile.model_validate(artist).model_dump(),
            "profile_image_url": artist.profile_image_url,
            "cover_image_url": artist.cover_image_url,
            "tracks": profile["tracks"],
        },
    }
