"""Streaming multipart parsing that stops as soon as a file part is too large"""
from dataclasses import dataclass, field
from tempfile import SpooledTemporaryFile
from typing import List, Optional, Tuple, Union
import logging

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.datastructures import FormData, Headers, UploadFile
from starlette.requests import Request

from mixflow.errors import BadRequestError

logger = logging.getLogger(__name__)

SPOOL_MAX_SIZE = 1024 * 1024  # Parts larger than this roll over to a temp file
MAX_FIELD_SIZE = 1024 * 1024
FORM_OVERHEAD = 1024 * 1024  # Text fields and part headers on top of the files


def file_too_large(max_file_size: int) -> BadRequestError:
    return BadRequestError(
        "File too large",
        code="FILE_TOO_LARGE",
        details=f"Maximum file size is {max_file_size // (1024 * 1024)}MB",
    )


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


@dataclass
class _Part:
    name: str = ""
    headers: List[Tuple[bytes, bytes]] = field(default_factory=list)
    data: bytearray = field(default_factory=bytearray)
    file: Optional[UploadFile] = None
    size: int = 0


class LimitedMultipartReader:
    """
    Feeds body chunks to python-multipart and builds a FormData

    Parser callbacks are synchronous, so file bytes are queued and written by
    ``flush`` after each chunk. A file part crossing ``max_file_size`` raises
    FILE_TOO_LARGE while the body is still arriving.
    """

    def __init__(self, boundary: bytes, max_file_size: int):
        self.max_file_size = max_file_size
        self.items: List[Tuple[str, Union[str, UploadFile]]] = []
        self._part = _Part()
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._pending: List[Tuple[UploadFile, bytes]] = []
        self._parser = MultipartParser(boundary, callbacks={
            "on_part_begin": self._on_part_begin,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
        })

    def _on_part_begin(self) -> None:
        self._part = _Part()

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field.extend(data[start:end])

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value.extend(data[start:end])

    def _on_header_end(self) -> None:
        self._part.headers.append((bytes(self._header_field).lower(), bytes(self._header_value)))
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        headers = Headers(raw=self._part.headers)
        _, options = parse_options_header(headers.get("content-disposition", ""))
        if b"name" not in options:
            raise BadRequestError("Multipart part without a field name", code="INVALID_MULTIPART")

        self._part.name = _decode(options[b"name"])
        if b"filename" in options:
            self._part.file = UploadFile(
                file=SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE),
                size=0,
                filename=_decode(options[b"filename"]),
                headers=headers,
            )
            # Registered now so a later failure still closes it
            self.items.append((self._part.name, self._part.file))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        chunk = data[start:end]
        part = self._part
        if part.file is None:
            if len(part.data) + len(chunk) > MAX_FIELD_SIZE:
                raise BadRequestError(f"Form field '{part.name}' is too large", code="VALIDATION_ERROR")
            part.data.extend(chunk)
            return

        part.size += len(chunk)
        if part.size > self.max_file_size:
            logger.warning(f"Upload part '{part.name}' exceeded {self.max_file_size} bytes, aborting")
            raise file_too_large(self.max_file_size)
        self._pending.append((part.file, chunk))

    def _on_part_end(self) -> None:
        if self._part.file is None:
            self.items.append((self._part.name, _decode(bytes(self._part.data))))

    def feed(self, chunk: bytes) -> None:
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise BadRequestError("Malformed multipart body", code="INVALID_MULTIPART") from e

    async def flush(self) -> None:
        for upload, chunk in self._pending:
            await upload.write(chunk)
        self._pending.clear()

    async def finish(self) -> FormData:
        try:
            self._parser.finalize()
        except MultipartParseError as e:
            raise BadRequestError("Malformed multipart body", code="INVALID_MULTIPART") from e
        await self.flush()
        for _, value in self.items:
            if isinstance(value, UploadFile):
                await value.seek(0)
        return FormData(self.items)

    async def close(self) -> None:
        for _, value in self.items:
            if isinstance(value, UploadFile):
                await value.close()


async def read_limited_form(request: Request, max_file_size: int, max_files: int) -> FormData:
    """
    Read a multipart upload without ever holding an oversized part

    A declared Content-Length above what ``max_files`` full-size files plus
    form overhead can take is refused before the body is read. Otherwise the
    body is parsed as it streams in and each file part is capped at
    ``max_file_size``. Non-multipart bodies are parsed normally; they carry no
    files.

    Raises:
        BadRequestError: FILE_TOO_LARGE, INVALID_MULTIPART or VALIDATION_ERROR
    """
    content_type, options = parse_options_header(request.headers.get("content-type", ""))
    if content_type != b"multipart/form-data":
        return await request.form()
    if b"boundary" not in options:
        raise BadRequestError("Multipart body without a boundary", code="INVALID_MULTIPART")

    max_body_size = max_files * max_file_size + FORM_OVERHEAD
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_body_size:
        logger.warning(f"Rejected upload declaring {declared} bytes before reading it")
        raise file_too_large(max_file_size)

    reader = LimitedMultipartReader(options[b"boundary"], max_file_size)
    received = 0
    try:
        async for chunk in request.stream():
            received += len(chunk)
            if received > max_body_size:
                raise file_too_large(max_file_size)
            reader.feed(chunk)
            await reader.flush()
        return await reader.finish()
    except Exception:
        await reader.close()
        raise
