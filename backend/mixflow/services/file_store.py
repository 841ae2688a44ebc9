"""Filesystem storage for uploaded audio and artwork"""
from pathlib import Path
from typing import BinaryIO, Optional
import shutil
import logging

from mixflow.config import Settings

logger = logging.getLogger(__name__)

AUDIO = "audio"
ARTWORK = "artwork"
KINDS = (AUDIO, ARTWORK)


class FileStore:
    """Two flat directories under the upload root, addressed by generated filenames"""

    def __init__(self, settings: Settings):
        """
        Initialize file store

        Args:
            settings: Application settings
        """
        self.root = settings.upload_root
        self.url_prefix = settings.upload_url_prefix.rstrip("/")

    def directory(self, kind: str) -> Path:
        if kind not in KINDS:
            raise ValueError(f"Unknown file kind: {kind}")
        return self.root / kind

    def ensure_directories(self) -> None:
        """Create the upload root and both kind directories if missing"""
        for directory in (self.root, *(self.directory(kind) for kind in KINDS)):
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created upload directory: {directory}")

    def public_url(self, kind: str, filename: str) -> str:
        return f"{self.url_prefix}/{kind}/{filename}"

    def save(self, kind: str, filename: str, source: BinaryIO) -> Path:
        """
        Copy an uploaded stream to its final location

        Args:
            kind: "audio" or "artwork"
            filename: Generated filename, no directory parts
            source: Readable binary file object

        Returns:
            Path of the written file
        """
        if Path(filename).name != filename:
            raise ValueError(f"Invalid filename: {filename}")

        self.ensure_directories()
        target = self.directory(kind) / filename
        source.seek(0)
        with open(target, "xb") as out:
            shutil.copyfileobj(source, out)
        logger.info(f"Stored {kind} file: {target}")
        return target

    def resolve_url(self, url: Optional[str]) -> Optional[Path]:
        """
        Map a stored URL such as /uploads/audio/x.mp3 to a path inside the upload root

        Returns:
            Absolute path, or None when the URL does not point inside the store
        """
        if not url:
            return None

        relative = url
        if relative.startswith(self.url_prefix + "/"):
            relative = relative[len(self.url_prefix) + 1:]
        relative = relative.lstrip("/")
        return self.resolve_relative(relative)

    def resolve_relative(self, relative: str) -> Optional[Path]:
        """Resolve a path relative to the upload root, refusing anything that escapes it"""
        root = self.root.resolve()
        try:
            full_path = (root / relative).resolve()
        except (OSError, RuntimeError) as e:
            logger.error(f"Path resolution error: {e}")
            return None

        if full_path == root or not full_path.is_relative_to(root):
            logger.warning(f"Rejected path outside upload root: {relative}")
            return None
        return full_path

    def exists(self, url: Optional[str]) -> bool:
        path = self.resolve_url(url)
        return path is not None and path.is_file()

    def size(self, url: str) -> int:
        path = self.resolve_url(url)
        if path is None:
            raise FileNotFoundError(url)
        return path.stat().st_size

    def delete(self, url: Optional[str]) -> bool:
        """
        Best-effort delete. A file that is already gone is not an error.

        Returns:
            True if a file was removed
        """
        path = self.resolve_url(url)
        if path is None:
            return False
        try:
            if not path.exists():
                return False
            path.unlink()
            logger.info(f"Deleted file: {path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to delete file {path}: {e}")
            return False
