import io

import pytest

from mixflow.services.file_store import FileStore
from mixflow.utils.metadata_extractor import read_duration_seconds, track_duration


@pytest.fixture
def file_store(settings):
    store = FileStore(settings)
    store.ensure_directories()
    return store


def test_save_and_resolve(file_store, settings):
    path = file_store.save("audio", "audio-1-2-song.mp3", io.BytesIO(b"abc"))
    url = file_store.public_url("audio", "audio-1-2-song.mp3")

    assert url == "/uploads/audio/audio-1-2-song.mp3"
    assert path == settings.audio_dir / "audio-1-2-song.mp3"
    assert file_store.resolve_url(url) == path.resolve()
    assert file_store.exists(url)
    assert file_store.size(url) == 3


def test_save_refuses_to_overwrite(file_store):
    file_store.save("artwork", "artwork-1.png", io.BytesIO(b"first"))
    with pytest.raises(FileExistsError):
        file_store.save("artwork", "artwork-1.png", io.BytesIO(b"second"))


@pytest.mark.parametrize("filename", ["../escape.mp3", "sub/dir.mp3"])
def test_save_rejects_paths(file_store, filename):
    with pytest.raises(ValueError):
        file_store.save("audio", filename, io.BytesIO(b"x"))


def test_unknown_kind(file_store):
    with pytest.raises(ValueError):
        file_store.directory("video")


@pytest.mark.parametrize("url", [None, "", "/uploads/../../etc/passwd", "/uploads/audio/../../../x"])
def test_resolve_url_stays_inside_root(file_store, url):
    assert file_store.resolve_url(url) is None
    assert not file_store.exists(url)


def test_delete_is_best_effort(file_store):
    file_store.save("audio", "gone.mp3", io.BytesIO(b"x"))
    url = file_store.public_url("audio", "gone.mp3")

    assert file_store.delete(url) is True
    assert file_store.delete(url) is False
    assert file_store.delete(None) is False
    assert file_store.delete("/uploads/../outside") is False


def test_duration_of_unreadable_audio(tmp_path):
    path = tmp_path / "noise.mp3"
    path.write_bytes(bytes(range(200)))
    assert read_duration_seconds(path) is None
    assert track_duration(path, 180) == 180


def test_duration_of_missing_file(tmp_path):
    assert track_duration(tmp_path / "missing.wav", 42) == 42
