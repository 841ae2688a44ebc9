"""HTTP Range header parsing for single byte ranges"""
from dataclasses import dataclass
from typing import Optional


class RangeNotSatisfiable(ValueError):
    """The Range header cannot be served for a file of this size"""

    def __init__(self, header: str, size: int):
        super().__init__(f"Range '{header}' not satisfiable for {size} bytes")
        self.header = header
        self.size = size


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # Inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


def parse_range_header(header: Optional[str], size: int) -> Optional[ByteRange]:
    """
    Parse a Range header against a file size

    Supports ``bytes=a-b``, ``bytes=a-`` and the suffix form ``bytes=-n``.
    An end past the last byte is clamped to it.

    Args:
        header: Raw Range header value, or None
        size: File size in bytes

    Returns:
        ByteRange to serve, or None when the whole file should be sent
        (no header, another unit, or several ranges)

    Raises:
        RangeNotSatisfiable: malformed numbers, start after end, or start past the file
    """
    if not header:
        return None

    unit, sep, ranges = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        return None

    ranges = ranges.strip()
    if "," in ranges:
        return None

    first, dash, last = ranges.partition("-")
    first, last = first.strip(), last.strip()
    if not dash or not (first or last):
        raise RangeNotSatisfiable(header, size)
    if (first and not first.isdigit()) or (last and not last.isdigit()):
        raise RangeNotSatisfiable(header, size)

    if size <= 0:
        raise RangeNotSatisfiable(header, size)

    if not first:
        # Suffix range: the last n bytes
        suffix = int(last)
        if suffix == 0:
            raise RangeNotSatisfiable(header, size)
        return ByteRange(start=max(size - suffix, 0), end=size - 1)

    start = int(first)
    end = int(last) if last else size - 1
    if start >= size or start > end:
        raise RangeNotSatisfiable(header, size)

    return ByteRange(start=start, end=min(end, size - 1))
