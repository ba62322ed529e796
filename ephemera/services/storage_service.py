"""
Local media storage for voice notes.

Files are written under settings.media_root and served by the /media
static mount. Keys are generated server-side so uploaded filenames never
reach the filesystem.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile, status
import magic

from ephemera.config import settings
from ephemera.utils.datetime_utils import utc_now
from ephemera.utils.validators import validate_file_type, validate_file_size

logger = logging.getLogger(__name__)

# libmagic names for the allowed audio containers
SNIFFED_ALIASES = {
    "video/webm": "audio/webm",
    "application/ogg": "audio/ogg",
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
    "audio/vnd.wave": "audio/wav",
    "audio/x-m4a": "audio/mp4",
    "video/mp4": "audio/mp4",
    "audio/mp3": "audio/mpeg",
}

AUDIO_EXTENSIONS = {
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
    "audio/wav": ".wav",
}


def detect_mime(head: bytes) -> str:
    """Detect a MIME type from the first bytes of a file (magic numbers)."""
    sniffed = magic.Magic(mime=True).from_buffer(head)
    return SNIFFED_ALIASES.get(sniffed, sniffed)


@dataclass(frozen=True)
class StoredObject:
    """
    key: path relative to the media root (e.g. "audio/<room>/<ts>-<user>.webm")
    url: public URL of the stored file
    size: bytes written
    mime: content type detected from the file contents
    """
    key: str
    url: str
    size: int
    mime: str


class StorageService:
    """Local filesystem storage with atomic writes (tmp file + replace)."""

    def __init__(self, media_root: Optional[str] = None, base_url: Optional[str] = None):
        self.media_root = Path(media_root or settings.media_root)
        self.base_url = (base_url or settings.media_base_url).rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    async def save_voice_note(self, upload: UploadFile, room_id: str, user_id: str) -> StoredObject:
        """
        Validate and store an uploaded voice note.

        The size is checked before anything is read, and the type comes from
        the file's magic numbers rather than the client's Content-Type.

        Raises:
            HTTPException: 400 for an empty file or a non-audio payload,
                413 for a file over max_upload_size
        """
        upload.file.seek(0, 2)
        size = upload.file.tell()
        upload.file.seek(0)

        if not validate_file_size(size, settings.max_upload_size):
            if size == 0:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Audio file is empty"
                )
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Audio file too large ({size} bytes). Maximum: {settings.max_upload_size} bytes"
            )

        head = upload.file.read(8192)
        upload.file.seek(0)

        mime = detect_mime(head)
        if not validate_file_type(mime, settings.get_allowed_audio_types_list()):
            logger.warning(
                f"[STORAGE] Rejected upload from {user_id}: declared {upload.content_type}, detected {mime}"
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported audio type: {mime}"
            )

        data = await upload.read()

        suffix = AUDIO_EXTENSIONS.get(mime, ".webm")
        timestamp = int(utc_now().timestamp() * 1000)
        key = f"audio/{room_id}/{timestamp}-{user_id}{suffix}"

        self._write(key, data)
        logger.info(f"[STORAGE] Stored voice note {key} ({len(data)} bytes, {mime})")

        return StoredObject(key=key, url=self.public_url(key), size=len(data), mime=mime)

    def _write(self, key: str, data: bytes) -> None:
        abs_path = self.media_root / key
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = abs_path.with_suffix(abs_path.suffix + ".tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, abs_path)


storage_service = StorageService()
