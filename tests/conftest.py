import pytest
from fastapi.testclient import TestClient

from mixflow.config import Settings
from mixflow.main import create_app
from mixflow.models import Artist, Track, TrackStatus, User, UserType
from mixflow.security import create_access_token


def audio_bytes(size: int) -> bytes:
    """Deterministic payload whose byte at offset i is i % 251"""
    return bytes(i % 251 for i in range(size))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'mixflow-test.db'}",
        upload_dir=str(tmp_path / "uploads"),
        jwt_secret="test-secret",
        analytics_workers=2,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def store(app):
    return app.state.file_store


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(username=None, user_type=UserType.LISTENER, is_active=True):
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            username=username,
            user_type=user_type,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user, settings)}"}

    return _headers


@pytest.fixture
def make_artist(db, make_user):
    def _make(user=None, stage_name="Night Shift"):
        user = user or make_user(user_type=UserType.ARTIST)
        artist = Artist(user_id=user.id, stage_name=stage_name, genres=["House"])
        user.user_type = UserType.ARTIST
        db.add(artist)
        db.commit()
        db.refresh(artist)
        return artist

    return _make


@pytest.fixture
def make_track(db, store, make_artist):
    """Insert a track whose audio file exists in the store"""
    counter = {"n": 0}

    def _make(
        artist=None,
        size=5000,
        status=TrackStatus.PENDING,
        is_public=True,
        genre="House",
        with_artwork=False,
        stream_count=0,
    ):
        counter["n"] += 1
        artist = artist or make_artist()
        store.ensure_directories()

        audio_name = f"audio-fixture-{counter['n']}.mp3"
        (store.directory("audio") / audio_name).write_bytes(audio_bytes(size))

        artwork_url = None
        if with_artwork:
            artwork_name = f"artwork-fixture-{counter['n']}.png"
            (store.directory("artwork") / artwork_name).write_bytes(b"\x89PNG fixture")
            artwork_url = store.public_url("artwork", artwork_name)

        track = Track(
            artist_id=artist.id,
            title=f"Track {counter['n']}",
            duration=180,
            file_url=store.public_url("audio", audio_name),
            artwork_url=artwork_url,
            genre=genre,
            status=status,
            is_public=is_public,
            stream_count=stream_count,
        )
        db.add(track)
        db.commit()
        db.refresh(track)
        return track

    return _make
