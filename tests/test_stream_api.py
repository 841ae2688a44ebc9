from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import audio_bytes
from mixflow.models import Stream, Track, TrackStatus

PAYLOAD = audio_bytes(5000)


def stream_count(app, db, track_id):
    assert app.state.analytics.drain(timeout=5)
    db.expire_all()
    return db.get(Track, track_id).stream_count


def test_range_request_returns_partial_content(client, make_track):
    track = make_track(size=5000)
    response = client.get(f"/api/tracks/{track.id}/stream", headers={"Range": "bytes=0-999"})

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 0-999/5000"
    assert response.headers["content-length"] == "1000"
    assert response.headers["accept-ranges"] == "bytes"
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.content == PAYLOAD[:1000]


@pytest.mark.parametrize("header,start,end", [
    ("bytes=1000-1999", 1000, 1999),
    ("bytes=4500-", 4500, 4999),
    ("bytes=4990-6000", 4990, 4999),
    ("bytes=-250", 4750, 4999),
    ("bytes=0-0", 0, 0),
])
def test_range_bodies_match_file_slice(client, make_track, header, start, end):
    track = make_track(size=5000)
    response = client.get(f"/api/tracks/{track.id}/stream", headers={"Range": header})

    assert response.status_code == 206
    assert response.headers["content-range"] == f"bytes {start}-{end}/5000"
    assert int(response.headers["content-length"]) == end - start + 1
    assert response.content == PAYLOAD[start:end + 1]


def test_full_file_without_range(client, make_track):
    track = make_track(size=5000)
    response = client.get(f"/api/tracks/{track.id}/stream")

    assert response.status_code == 200
    assert response.headers["content-length"] == "5000"
    assert response.headers["accept-ranges"] == "bytes"
    assert "content-range" not in response.headers
    assert response.content == PAYLOAD


def test_multiple_ranges_fall_back_to_full_file(client, make_track):
    track = make_track(size=5000)
    response = client.get(f"/api/tracks/{track.id}/stream", headers={"Range": "bytes=0-9,20-29"})
    assert response.status_code == 200
    assert response.content == PAYLOAD


def test_large_file_streams_in_chunks(client, make_track, settings):
    size = settings.stream_chunk_size * 3 + 17
    track = make_track(size=size)
    response = client.get(f"/api/tracks/{track.id}/stream")
    assert response.status_code == 200
    assert response.content == audio_bytes(size)


@pytest.mark.parametrize("header", ["bytes=5000-", "bytes=900-100", "bytes=x-y"])
def test_unsatisfiable_range(client, app, db, make_track, header):
    track = make_track(size=5000)
    response = client.get(f"/api/tracks/{track.id}/stream", headers={"Range": header})

    assert response.status_code == 416
    assert response.headers["content-range"] == "bytes */5000"
    assert response.json()["code"] == "RANGE_NOT_SATISFIABLE"
    assert stream_count(app, db, track.id) == 0


def test_missing_audio_file(client, app, db, store, make_track):
    track = make_track()
    store.resolve_url(track.file_url).unlink()

    response = client.get(f"/api/tracks/{track.id}/stream")
    assert response.status_code == 404
    assert response.json()["code"] == "FILE_NOT_FOUND"
    assert stream_count(app, db, track.id) == 0


def test_unknown_track(client):
    response = client.get("/api/tracks/does-not-exist/stream")
    assert response.status_code == 404
    assert response.json()["code"] == "TRACK_NOT_FOUND"


@pytest.mark.parametrize("status,is_public", [
    (TrackStatus.REJECTED, True),
    (TrackStatus.APPROVED, False),
])
def test_hidden_tracks_are_not_streamed(client, make_track, status, is_public):
    track = make_track(status=status, is_public=is_public)
    response = client.get(f"/api/tracks/{track.id}/stream")
    assert response.status_code == 404
    assert response.json()["code"] == "TRACK_NOT_FOUND"


def test_approved_track_streams(client, make_track):
    track = make_track(status=TrackStatus.APPROVED)
    assert client.get(f"/api/tracks/{track.id}/stream").status_code == 200


def test_each_accepted_request_counts_one_play(client, app, db, make_track):
    track = make_track()
    for header in (None, "bytes=0-99", "bytes=100-"):
        headers = {"Range": header} if header else {}
        assert client.get(f"/api/tracks/{track.id}/stream", headers=headers).status_code in (200, 206)

    assert stream_count(app, db, track.id) == 3


def test_concurrent_streams_each_count_once(client, app, db, make_track):
    track = make_track(size=2000)
    url = f"/api/tracks/{track.id}/stream"

    with ThreadPoolExecutor(max_workers=8) as pool:
        responses = list(pool.map(lambda i: client.get(url, headers={"Range": f"bytes={i}-"}), range(20)))

    assert [r.status_code for r in responses] == [206] * 20
    assert stream_count(app, db, track.id) == 20


def test_anonymous_play_is_not_logged(client, app, db, make_track):
    track = make_track()
    client.get(f"/api/tracks/{track.id}/stream")

    assert stream_count(app, db, track.id) == 1
    assert db.query(Stream).count() == 0


def test_authenticated_play_is_logged(client, app, db, make_track, make_user, auth_headers):
    track = make_track()
    listener = make_user()
    headers = {**auth_headers(listener), "User-Agent": "test-player/1.0"}
    client.get(f"/api/tracks/{track.id}/stream", headers=headers)

    assert stream_count(app, db, track.id) == 1
    stream = db.query(Stream).one()
    assert stream.user_id == listener.id
    assert stream.track_id == track.id
    assert stream.duration_played == 0
    assert stream.device_type == "test-player/1.0"
    assert stream.platform == "web"


def test_invalid_token_streams_anonymously(client, app, db, make_track):
    track = make_track()
    response = client.get(f"/api/tracks/{track.id}/stream", headers={"Authorization": "Bearer nonsense"})

    assert response.status_code == 200
    assert stream_count(app, db, track.id) == 1
    assert db.query(Stream).count() == 0
