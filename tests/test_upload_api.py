import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from conftest import audio_bytes
from mixflow.main import create_app
from mixflow.models import Artist, Track, TrackUpload, User, UserType
from mixflow.services.ingestion import IngestionValidator
from mixflow.services.upload_service import UploadService
from mixflow.utils.multipart_form import LimitedMultipartReader

MB = 1024 * 1024


def upload(client, headers, files, data=None):
    return client.post(
        "/api/tracks/upload",
        headers=headers,
        files=files,
        data=data if data is not None else {"title": "Sunrise", "genre": "House"},
    )


def stored_files(store, kind):
    return sorted(p.name for p in store.directory(kind).iterdir())


def test_first_upload_provisions_artist_and_creates_pending_track(client, db, store, make_user, auth_headers):
    user = make_user(username="dj_nova")
    response = upload(
        client,
        auth_headers(user),
        files={"audio": ("song.mp3", audio_bytes(5 * MB), "audio/mpeg")},
        data={"title": "Sunrise", "genre": "House", "bpm": "124", "tags": "deep, warm"},
    )

    assert response.status_code == 201
    body = response.json()
    track_json = body["track"]
    assert body["message"] == "Track uploaded successfully"
    assert track_json["status"] == "PENDING"
    assert track_json["fileUrl"].startswith("/uploads/audio/audio-")
    assert track_json["fileUrl"].endswith("-song.mp3")
    assert track_json["artworkUrl"] is None

    db.expire_all()
    artist = db.query(Artist).filter(Artist.user_id == user.id).one()
    assert artist.stage_name == "dj_nova"
    assert db.get(User, user.id).user_type == UserType.ARTIST

    track = db.get(Track, track_json["id"])
    assert track.artist_id == artist.id
    assert track.bpm == 124
    assert track.tags == ["deep", "warm"]
    assert track.stream_count == 0

    record = db.query(TrackUpload).filter(TrackUpload.track_id == track.id).one()
    assert record.user_id == user.id
    assert record.original_name == "song.mp3"
    assert record.file_size == 5 * MB
    assert record.upload_url == track.file_url
    assert store.resolve_url(track.file_url).stat().st_size == 5 * MB


def test_unreadable_audio_gets_placeholder_duration(client, db, make_user, auth_headers):
    response = upload(
        client,
        auth_headers(make_user()),
        files={"audio": ("noise.mp3", audio_bytes(2048), "audio/mpeg")},
    )
    assert response.status_code == 201
    assert db.get(Track, response.json()["track"]["id"]).duration == 180


def test_upload_with_artwork(client, store, make_user, auth_headers):
    response = upload(
        client,
        auth_headers(make_user()),
        files=[
            ("audio", ("song.wav", audio_bytes(1000), "audio/wav")),
            ("artwork", ("cover.png", b"\x89PNG cover", "image/png")),
        ],
    )
    assert response.status_code == 201
    artwork_url = response.json()["track"]["artworkUrl"]
    assert artwork_url.startswith("/uploads/artwork/artwork-")
    assert store.exists(artwork_url)

    served = client.get(artwork_url)
    assert served.status_code == 200
    assert served.content == b"\x89PNG cover"
    assert served.headers["content-type"] == "image/png"


def test_second_upload_reuses_artist(client, db, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    for title in ("One", "Two"):
        response = upload(
            client,
            headers,
            files={"audio": ("a.mp3", audio_bytes(100), "audio/mpeg")},
            data={"title": title, "genre": "House"},
        )
        assert response.status_code == 201

    db.expire_all()
    assert db.query(Artist).filter(Artist.user_id == user.id).count() == 1
    artist = db.query(Artist).filter(Artist.user_id == user.id).one()
    assert db.query(Track).filter(Track.artist_id == artist.id).count() == 2


def test_upload_requires_token(client, store):
    response = upload(client, {}, files={"audio": ("a.mp3", audio_bytes(100), "audio/mpeg")})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_REQUIRED"
    assert stored_files(store, "audio") == []


def test_upload_rejects_tampered_token(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    headers["Authorization"] += "x"
    response = upload(client, headers, files={"audio": ("a.mp3", audio_bytes(100), "audio/mpeg")})
    assert response.status_code == 403
    assert response.json()["code"] == "INVALID_TOKEN"


def test_upload_without_audio(client, db, make_user, auth_headers):
    user = make_user()
    response = upload(client, auth_headers(user), files={"artwork": ("c.jpg", b"jpeg", "image/jpeg")})
    assert response.status_code == 400
    assert response.json()["code"] == "AUDIO_FILE_REQUIRED"
    assert db.query(Track).count() == 0


@pytest.mark.parametrize("files,code", [
    ({"cover": ("c.jpg", b"jpeg", "image/jpeg")}, "INVALID_FIELD_NAME"),
    ({"audio": ("setup.exe", b"MZ", "audio/mpeg")}, "INVALID_AUDIO_FILE"),
    ([
        ("audio", ("a.mp3", b"a", "audio/mpeg")),
        ("artwork", ("c.jpg", b"c", "image/bmp")),
    ], "INVALID_IMAGE_FILE"),
    ([
        ("audio", ("a.mp3", b"a", "audio/mpeg")),
        ("artwork", ("c.jpg", b"c", "image/jpeg")),
        ("audio", ("b.mp3", b"b", "audio/mpeg")),
    ], "TOO_MANY_FILES"),
])
def test_rejected_uploads_write_nothing(client, db, store, make_user, auth_headers, files, code):
    response = upload(client, auth_headers(make_user()), files=files)
    assert response.status_code == 400
    assert response.json()["code"] == code
    assert stored_files(store, "audio") == []
    assert stored_files(store, "artwork") == []
    assert db.query(Track).count() == 0
    assert db.query(Artist).count() == 0


def test_metadata_errors_are_reported_per_field(client, make_user, auth_headers):
    response = upload(
        client,
        auth_headers(make_user()),
        files={"audio": ("a.mp3", b"a", "audio/mpeg")},
        data={"title": "", "genre": "House", "bpm": "400"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert set(body["details"]) == {"title", "bpm"}


def test_file_too_large(settings, auth_headers):
    small = settings.model_copy(update={"upload_max_file_size": 1024})
    small_app = create_app(small)
    with TestClient(small_app) as small_client:
        session = small_app.state.session_factory()
        user = User(email="big@example.com")
        session.add(user)
        session.commit()
        session.refresh(user)

        response = upload(
            small_client,
            auth_headers(user),
            files={"audio": ("big.mp3", audio_bytes(2048), "audio/mpeg")},
        )
        session.close()

    assert response.status_code == 400
    assert response.json()["code"] == "FILE_TOO_LARGE"


def test_metadata_failure_removes_stored_files(client, app, db, store, make_user, auth_headers, monkeypatch):
    def broken_create(self, *args, **kwargs):
        raise OperationalError("INSERT INTO tracks", {}, Exception("disk I/O error"))

    monkeypatch.setattr(UploadService, "_create_track", broken_create)
    response = upload(
        client,
        auth_headers(make_user()),
        files=[
            ("audio", ("a.mp3", audio_bytes(100), "audio/mpeg")),
            ("artwork", ("c.jpg", b"jpeg", "image/jpeg")),
        ],
    )

    assert response.status_code == 500
    assert response.json()["code"] == "STORAGE_ERROR"
    assert stored_files(store, "audio") == []
    assert stored_files(store, "artwork") == []
    assert db.query(Track).count() == 0


def test_new_upload_is_listed_and_streamable(client, make_user, auth_headers):
    response = upload(
        client,
        auth_headers(make_user()),
        files={"audio": ("a.mp3", audio_bytes(3000), "audio/mpeg")},
    )
    track_id = response.json()["track"]["id"]

    listing = client.get("/api/tracks").json()
    assert [t["id"] for t in listing["tracks"]] == [track_id]

    stream = client.get(f"/api/tracks/{track_id}/stream", headers={"Range": "bytes=0-99"})
    assert stream.status_code == 206
    assert stream.content == audio_bytes(3000)[:100]


@pytest.fixture
def parsed_forms(monkeypatch):
    """Forms handed to the validator, kept so tests can inspect them afterwards"""
    forms = []
    original_validate = IngestionValidator.validate

    def recording_validate(self, form):
        forms.append(form)
        return original_validate(self, form)

    monkeypatch.setattr(IngestionValidator, "validate", recording_validate)
    return forms


def uploaded_files(form):
    return [value for _, value in form.multi_items() if not isinstance(value, str)]


def test_temp_files_closed_after_upload(client, make_user, auth_headers, parsed_forms):
    response = upload(
        client,
        auth_headers(make_user()),
        files=[
            ("audio", ("a.mp3", audio_bytes(2 * MB), "audio/mpeg")),
            ("artwork", ("c.png", b"\x89PNG cover", "image/png")),
        ],
    )

    assert response.status_code == 201
    [form] = parsed_forms
    files = uploaded_files(form)
    assert len(files) == 2
    assert all(f.file.closed for f in files)


def test_temp_files_closed_after_rejection(client, make_user, auth_headers, parsed_forms):
    response = upload(client, auth_headers(make_user()), files={"audio": ("setup.exe", b"MZ", "audio/mpeg")})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_AUDIO_FILE"
    [form] = parsed_forms
    assert all(f.file.closed for f in uploaded_files(form))


def test_oversized_body_rejected_before_parsing(settings, auth_headers, monkeypatch):
    fed = []
    monkeypatch.setattr(LimitedMultipartReader, "feed", lambda self, chunk: fed.append(chunk))

    small = settings.model_copy(update={"upload_max_file_size": 1024})
    small_app = create_app(small)
    with TestClient(small_app) as small_client:
        session = small_app.state.session_factory()
        user = User(email="huge@example.com")
        session.add(user)
        session.commit()
        session.refresh(user)

        response = upload(
            small_client,
            auth_headers(user),
            files={"audio": ("huge.mp3", audio_bytes(8 * MB), "audio/mpeg")},
        )
        session.close()

    assert response.status_code == 400
    assert response.json()["code"] == "FILE_TOO_LARGE"
    assert fed == []
    assert stored_files(small_app.state.file_store, "audio") == []
