"""Audio metadata extraction utilities"""
from pathlib import Path
from typing import Optional
import logging

import mutagen

logger = logging.getLogger(__name__)


def read_duration_seconds(path: Path) -> Optional[int]:
    """
    Read the playing time of an audio file

    Args:
        path: Audio file on disk

    Returns:
        Whole seconds, or None when the format is unknown or the stream info is unreadable
    """
    try:
        audio = mutagen.File(str(path))
    except Exception as e:
        logger.warning(f"Could not read audio metadata from {path}: {e}")
        return None

    if audio is None or audio.info is None:
        return None

    length = getattr(audio.info, "length", None)
    if not length or length < 0:
        return None
    return int(round(length))


def track_duration(path: Path, fallback: int) -> int:
    """Duration for a newly stored track, falling back to a placeholder"""
    duration = read_duration_seconds(path)
    if duration is None:
        logger.info(f"Using placeholder duration {fallback}s for {path.name}")
        return fallback
    return duration
