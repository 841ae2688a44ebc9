"""Multipart upload validation and storage"""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union
import re
import secrets
import time
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from starlette.datastructures import FormData, UploadFile

from mixflow.config import Settings
from mixflow.errors import BadRequestError
from mixflow.services.file_store import ARTWORK, AUDIO, FileStore
from mixflow.utils.multipart_form import file_too_large

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_MIMES = {
    "audio/mpeg",
    "audio/wav",
    "audio/x-wav",
    "audio/vnd.wave",
    "audio/flac",
    "audio/x-flac",
    "audio/aac",
    "audio/mp4",
    "audio/x-m4a",
    "audio/webm",
    "video/webm",  # Recorded WebM blobs are often reported as video
    "audio/ogg",
    "audio/x-ms-wma",
}
ALLOWED_AUDIO_EXTENSIONS = {".mp3", ".wav", ".flac", ".aac", ".m4a", ".webm", ".ogg", ".wma"}

ALLOWED_IMAGE_MIMES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

FILE_FIELDS = (AUDIO, ARTWORK)
MAX_SANITIZED_NAME = 50


def file_extension(filename: str) -> str:
    """Lower-cased extension; a dot-only name such as ".mp3" is all extension"""
    name = Path(filename.replace("\\", "/")).name
    suffix = Path(name).suffix
    if not suffix and name.startswith(".") and name.count(".") == 1 and len(name) > 1:
        suffix = name
    return suffix.lower()


def is_valid_audio_file(filename: str, content_type: Optional[str]) -> bool:
    """
    Audio passes on a known extension, or on a known MIME type when the name has no extension

    Recorded blobs often arrive with a generic MIME type or without an
    extension, so either signal is enough; an unknown extension never is.
    """
    extension = file_extension(filename)
    if extension in ALLOWED_AUDIO_EXTENSIONS:
        return True
    return not extension and (content_type or "").lower() in ALLOWED_AUDIO_MIMES


def is_valid_image_file(filename: str, content_type: Optional[str]) -> bool:
    """Artwork needs both a known MIME type and a known extension"""
    extension = file_extension(filename)
    return (content_type or "").lower() in ALLOWED_IMAGE_MIMES and extension in ALLOWED_IMAGE_EXTENSIONS


def generate_filename(field: str, original_name: str) -> str:
    """
    Build a stored filename: {field}-{unix millis}-{random int}-{sanitized name}{extension}

    The sanitized name keeps only ASCII letters and digits, so the result
    never contains path separators.
    """
    original = Path(original_name.replace("\\", "/")).name
    raw_extension = file_extension(original)
    extension = re.sub(r"[^a-z0-9.]", "", raw_extension)
    stem = original[:len(original) - len(raw_extension)]
    sanitized = re.sub(r"[^a-zA-Z0-9]", "_", stem)[:MAX_SANITIZED_NAME] or "file"
    unique_suffix = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
    return f"{field}-{unique_suffix}-{sanitized}{extension}"


def _file_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


class UploadTrackForm(BaseModel):
    """Text fields sent alongside the audio file"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(min_length=1)
    description: Optional[str] = None
    genre: str = Field(min_length=1)
    sub_genre: Optional[str] = None
    bpm: Optional[int] = Field(default=None, ge=60, le=300)
    key_signature: Optional[str] = None
    is_explicit: bool = False
    is_public: bool = True
    tags: List[str] = Field(default_factory=list)

    @field_validator("title", "genre", mode="before")
    @classmethod
    def strip_required(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", "sub_genre", "key_signature", "bpm", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("is_explicit", "is_public", mode="before")
    @classmethod
    def parse_flag(cls, value):
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, value):
        return parse_tags(value)


def parse_tags(value: Union[str, List[str], None]) -> List[str]:
    """Accept a comma separated string or a list; trim and drop empties"""
    if value is None:
        return []
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    if isinstance(value, (list, tuple)):
        tags: List[str] = []
        for item in value:
            tags.extend(parse_tags(item) if isinstance(item, str) else [str(item)])
        return tags
    return value


@dataclass
class StoredFile:
    """An accepted file after it was written to the store"""
    field: str
    original_name: str
    filename: str
    mime_type: Optional[str]
    size: int
    url: str
    path: Path


@dataclass
class ValidatedUpload:
    """Everything the orchestrator needs, checked but not yet on disk"""
    metadata: UploadTrackForm
    audio: Optional[UploadFile]
    artwork: Optional[UploadFile]


class IngestionValidator:
    """Checks a multipart upload before any byte reaches the file store"""

    def __init__(self, settings: Settings, store: FileStore):
        self.max_file_size = settings.upload_max_file_size
        self.max_files = settings.upload_max_files
        self.store = store

    def validate(self, form: FormData) -> ValidatedUpload:
        """
        Validate file parts and text fields of a parsed form

        Raises:
            BadRequestError: with INVALID_FIELD_NAME, TOO_MANY_FILES, INVALID_AUDIO_FILE,
                INVALID_IMAGE_FILE, FILE_TOO_LARGE or VALIDATION_ERROR
        """
        files = self._validate_files(form)
        metadata = self._validate_metadata(form)
        return ValidatedUpload(metadata=metadata, audio=files.get(AUDIO), artwork=files.get(ARTWORK))

    def _validate_files(self, form: FormData) -> Dict[str, UploadFile]:
        parts = [
            (field, value)
            for field, value in form.multi_items()
            if isinstance(value, UploadFile) and value.filename
        ]

        for field, upload in parts:
            if field not in FILE_FIELDS:
                raise BadRequestError(
                    "Invalid field name. Allowed: audio, artwork",
                    code="INVALID_FIELD_NAME",
                )

        if len(parts) > self.max_files:
            raise BadRequestError("Too many files", code="TOO_MANY_FILES")

        accepted: Dict[str, UploadFile] = {}
        for field, upload in parts:
            if field in accepted:
                raise BadRequestError(f"Only one '{field}' file is allowed", code="TOO_MANY_FILES")

            if field == AUDIO and not is_valid_audio_file(upload.filename, upload.content_type):
                raise BadRequestError(
                    "Only audio files are allowed (MP3, WAV, FLAC, AAC, M4A, WebM, OGG, WMA)",
                    code="INVALID_AUDIO_FILE",
                )
            if field == ARTWORK and not is_valid_image_file(upload.filename, upload.content_type):
                raise BadRequestError(
                    "Only image files are allowed (JPEG, PNG, WebP)",
                    code="INVALID_IMAGE_FILE",
                )

            if _file_size(upload) > self.max_file_size:
                raise file_too_large(self.max_file_size)

            accepted[field] = upload

        return accepted

    def _validate_metadata(self, form: FormData) -> UploadTrackForm:
        data: Dict[str, object] = {}
        for key in form.keys():
            values = [v for v in form.getlist(key) if isinstance(v, str)]
            if not values:
                continue
            data[key] = values if key == "tags" and len(values) > 1 else values[0]

        try:
            return UploadTrackForm.model_validate(data)
        except ValidationError as e:
            details: Dict[str, list] = {}
            for err in e.errors():
                field = ".".join(str(part) for part in err["loc"]) or "body"
                details.setdefault(field, []).append(err["msg"])
            raise BadRequestError("Validation failed", code="VALIDATION_ERROR", details=details)

    def store_file(self, field: str, upload: UploadFile) -> StoredFile:
        """Write one accepted file under a freshly generated name"""
        while True:
            filename = generate_filename(field, upload.filename)
            try:
                path = self.store.save(field, filename, upload.file)
                break
            except FileExistsError:
                logger.warning(f"Filename collision for {filename}, regenerating")

        return StoredFile(
            field=field,
            original_name=upload.filename,
            filename=filename,
            mime_type=upload.content_type,
            size=path.stat().st_size,
            url=self.store.public_url(field, filename),
            path=path,
        )
