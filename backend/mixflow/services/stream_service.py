"""Range-aware audio streaming and detached play analytics"""
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_futures
from dataclasses import dataclass, field
from pathlib import Path
from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker
from typing import Dict, Iterator, Optional, Set
import threading
import logging

from mixflow.errors import NotFoundError, RangeNotSatisfiableError
from mixflow.models.stream import Stream
from mixflow.models.track import Track
from mixflow.services.file_store import FileStore
from mixflow.utils.http_range import ByteRange, RangeNotSatisfiable, parse_range_header

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPE = "audio/mpeg"
STREAM_PLATFORM = "web"


class AnalyticsRecorder:
    """
    Runs play counting off the request path.

    Each task uses its own session and swallows its own failures, so a
    broken analytics write never reaches the response being streamed.
    """

    def __init__(self, session_factory: sessionmaker, max_workers: int = 4):
        self.session_factory = session_factory
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="analytics")
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def submit_play(self, track_id: str, user_id: Optional[str] = None, device_type: Optional[str] = None) -> Future:
        """Schedule the stream count increment and, for known users, a Stream row"""
        future = self._executor.submit(self._record_play, track_id, user_id, device_type)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _record_play(self, track_id: str, user_id: Optional[str], device_type: Optional[str]) -> None:
        try:
            increment_stream_count(self.session_factory, track_id)
        except Exception as e:
            logger.error(f"Failed to increment stream count for track {track_id}: {e}")

        if user_id is None:
            return
        try:
            log_stream(self.session_factory, track_id, user_id, device_type)
        except Exception as e:
            logger.error(f"Failed to log stream of track {track_id} for user {user_id}: {e}")

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for outstanding tasks; True when none are left"""
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait_for_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def increment_stream_count(session_factory: sessionmaker, track_id: str) -> None:
    """Add one to stream_count in a single UPDATE, never read-modify-write"""
    db: Session = session_factory()
    try:
        db.execute(
            update(Track)
            .where(Track.id == track_id)
            .values(stream_count=Track.stream_count + 1)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def log_stream(session_factory: sessionmaker, track_id: str, user_id: str, device_type: Optional[str]) -> None:
    db: Session = session_factory()
    try:
        db.add(Stream(
            user_id=user_id,
            track_id=track_id,
            duration_played=0,
            device_type=device_type,
            platform=STREAM_PLATFORM,
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def iter_file(path: Path, start: int, length: int, chunk_size: int) -> Iterator[bytes]:
    """
    Yield ``length`` bytes of a file from ``start`` in chunks

    The file stays open only while the consumer keeps pulling; closing the
    generator (client disconnect) closes it.
    """
    remaining = length
    with open(path, "rb") as f:
        f.seek(start)
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


@dataclass
class StreamPlan:
    """What to send for one stream request"""
    track: Track
    path: Path
    size: int
    byte_range: Optional[ByteRange]
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return 206 if self.byte_range else 200

    @property
    def start(self) -> int:
        return self.byte_range.start if self.byte_range else 0

    @property
    def length(self) -> int:
        return self.byte_range.length if self.byte_range else self.size


class StreamService:
    """Service for serving stored audio with HTTP range semantics"""

    def __init__(self, db: Session, store: FileStore):
        """
        Initialize stream service

        Args:
            db: Database session
            store: File store holding the audio
        """
        self.db = db
        self.store = store

    def get_servable_track(self, track_id: str) -> Track:
        """
        Raises:
            NotFoundError: missing, private, or not PENDING/APPROVED, all reported the same way
        """
        track = self.db.query(Track).filter(Track.id == track_id).first()
        if not track or not track.is_servable:
            raise NotFoundError("Track not found", code="TRACK_NOT_FOUND")
        return track

    def plan(self, track_id: str, range_header: Optional[str]) -> StreamPlan:
        """
        Resolve the track, its file and the requested byte range

        Raises:
            NotFoundError: TRACK_NOT_FOUND or FILE_NOT_FOUND
            RangeNotSatisfiableError: the Range header cannot be served
        """
        track = self.get_servable_track(track_id)

        path = self.store.resolve_url(track.file_url)
        if path is None or not path.is_file():
            logger.warning(f"Audio file missing for track {track.id}: {track.file_url}")
            raise NotFoundError("Audio file not found", code="FILE_NOT_FOUND")

        size = path.stat().st_size
        try:
            byte_range = parse_range_header(range_header, size)
        except RangeNotSatisfiable:
            raise RangeNotSatisfiableError(
                "Requested range not satisfiable",
                headers={"Content-Range": f"bytes */{size}", "Accept-Ranges": "bytes"},
            )

        headers = {
            "Accept-Ranges": "bytes",
            "Content-Type": AUDIO_CONTENT_TYPE,
        }
        if byte_range:
            headers["Content-Range"] = byte_range.content_range(size)
            headers["Content-Length"] = str(byte_range.length)
        else:
            headers["Content-Length"] = str(size)

        return StreamPlan(track=track, path=path, size=size, byte_range=byte_range, headers=headers)
