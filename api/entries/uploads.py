"""
Voice upload handling.

The upload is streamed into a temporary file under the system temp dir
(size-limited), handed to the blob store, and the temp file is removed on
every path out of `stage_upload`.
"""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

import anyio
from fastapi import UploadFile

from core import config
from core.errors import PayloadTooLarge, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_MIME_TYPES = {
    "audio/webm",
    "audio/mpeg",
    "audio/mp4",
    "audio/wav",
    "audio/ogg",
}

DEFAULT_MAX_VOICE_UPLOAD_BYTES = 20 * 1024 * 1024  # 20 MiB
READ_CHUNK_BYTES = 1024 * 1024  # 1 MiB


@dataclass(frozen=True)
class StagedUpload:
    path: Path
    filename: str
    content_type: str
    size_bytes: int

    async def read_bytes(self) -> bytes:
        return await anyio.Path(self.path).read_bytes()


def max_voice_upload_bytes() -> int:
    value = config.env_int("MAX_VOICE_UPLOAD_BYTES", DEFAULT_MAX_VOICE_UPLOAD_BYTES)
    return value if value > 0 else DEFAULT_MAX_VOICE_UPLOAD_BYTES


def staging_dir() -> Path:
    path = Path(tempfile.gettempdir()) / "voices"
    path.mkdir(parents=True, exist_ok=True)
    return path


def validate_audio_upload(file: UploadFile | None) -> str:
    """
    Return the normalized content type if this upload is acceptable.
    """
    if file is None or not file.filename:
        raise ValidationError("Audio file is required.")

    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if content_type not in ALLOWED_AUDIO_MIME_TYPES:
        raise ValidationError("Invalid audio file type.")
    return content_type


async def _copy_to(file: UploadFile, target: Path, *, max_bytes: int) -> int:
    size = 0
    async with await anyio.open_file(target, "wb") as out:
        while True:
            chunk = await file.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            size += len(chunk)
            if size > max_bytes:
                raise PayloadTooLarge(f"File too large. Max is {max_bytes} bytes.")
            await out.write(chunk)
    return size


def discard_staged(path: Path) -> bool:
    try:
        os.remove(path)
    except FileNotFoundError:
        return True
    except OSError:
        logger.exception("temp_upload_cleanup_failed path=%s", path)
        return False
    return True


@asynccontextmanager
async def stage_upload(file: UploadFile, *, max_bytes: int | None = None) -> AsyncIterator[StagedUpload]:
    content_type = validate_audio_upload(file)
    limit = max_bytes if max_bytes is not None else max_voice_upload_bytes()

    fd, raw_path = tempfile.mkstemp(dir=staging_dir(), suffix=Path(file.filename or "").suffix[:10])
    os.close(fd)
    path = Path(raw_path)
    try:
        size = await _copy_to(file, path, max_bytes=limit)
        if size == 0:
            raise ValidationError("Audio file is empty.")
        yield StagedUpload(
            path=path,
            filename=file.filename or path.name,
            content_type=content_type,
            size_bytes=size,
        )
    finally:
        discard_staged(path)
