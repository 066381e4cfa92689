"""
Entry business logic.

Flow per request: normalize payload -> one SQL statement through the
repository -> normalize the returned row. Validation always happens before
anything is written.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from fastapi import UploadFile

from core import config
from core.blobstore import BlobStore, BlobStoreError
from core.errors import NotFound, UpstreamError, ValidationError
from core.resources import ReleaseResult, release_local_file

from . import normalizer, uploads
from .repository import EntryRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 50

# Postgres bigint; ids and offsets outside it cannot be bound.
BIGINT_MIN = -(2**63)
BIGINT_MAX = 2**63 - 1
MAX_PAGE = BIGINT_MAX // MAX_PAGE_LIMIT


def clamp_page(page: int | None) -> int:
    if page is None:
        return 1
    return max(int(page), 1)


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_PAGE_LIMIT
    return max(1, min(int(limit), MAX_PAGE_LIMIT))


async def create_entry(
    payload: Mapping[str, Any],
    *,
    user_id: int,
    entries: EntryRepository,
) -> dict:
    record = normalizer.normalize_for_storage(payload)
    row = await entries.insert(user_id=user_id, record=record)
    logger.info("entry_created entry_id=%s user_id=%s type=%s", row.get("id"), user_id, record.type)
    return normalizer.normalize_for_response(row)


async def create_voice_entry(
    file: UploadFile,
    *,
    user_id: int,
    entries: EntryRepository,
    blob_store: BlobStore,
    title: str | None = None,
    duration: str | None = None,
) -> dict:
    payload: dict[str, Any] = {}
    if title is not None:
        payload["title"] = title
    if duration is not None and duration.strip():
        payload["duration"] = duration

    # Reject a bad duration before touching the blob store.
    normalizer.parse_duration(payload.get("duration"))

    async with uploads.stage_upload(file) as staged:
        data = await staged.read_bytes()
        try:
            audio_url = await blob_store.upload(data, kind="audio", filename=staged.filename)
        except BlobStoreError as exc:
            raise UpstreamError(f"voice_upload_failed user_id={user_id}: {exc}") from exc

    record = normalizer.normalize_for_storage(payload, audio_url=audio_url)
    row = await entries.insert(user_id=user_id, record=record)
    logger.info(
        "entry_created entry_id=%s user_id=%s type=%s size_bytes=%s",
        row.get("id"),
        user_id,
        record.type,
        staged.size_bytes,
    )
    return normalizer.normalize_for_response(row)


async def list_entries(
    *,
    user_id: int,
    entries: EntryRepository,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    page = clamp_page(page)
    limit = clamp_limit(limit)
    rows = await entries.list_for_user(user_id=user_id, limit=limit, offset=(page - 1) * limit)
    return {
        "page": page,
        "limit": limit,
        "entries": [normalizer.normalize_for_response(row) for row in rows],
    }


async def get_entry(entry_id: int, *, user_id: int, entries: EntryRepository) -> dict:
    row = await entries.get(entry_id, user_id=user_id)
    if row is None:
        raise NotFound("Entry not found.")
    return normalizer.normalize_for_response(row)


async def update_entry(
    entry_id: int,
    payload: Mapping[str, Any],
    *,
    user_id: int,
    entries: EntryRepository,
) -> dict:
    changes = normalizer.normalize_for_update(payload)

    if "audioUrl" in changes or normalizer.blanks_a_field(changes):
        current = await entries.get(entry_id, user_id=user_id)
        if current is None:
            raise NotFound("Entry not found.")
        # `type` is immutable, so audio can only be replaced on voice entries.
        if "audioUrl" in changes and normalizer.parse_stored_row(current).kind != normalizer.VOICE:
            raise ValidationError("audioUrl can only be set on voice entries.")
        if normalizer.is_empty_after_update(current, changes):
            raise ValidationError("Entry would be empty: keep content, title or media.")

    row = await entries.update(entry_id, user_id=user_id, changes=changes)
    if row is None:
        raise NotFound("Entry not found.")
    logger.info("entry_updated entry_id=%s user_id=%s fields=%s", entry_id, user_id, ",".join(changes))
    return normalizer.normalize_for_response(row)


def release_entry_resources(
    row: Mapping[str, Any],
    *,
    root: str | None = None,
    extra_roots: Sequence[str] | None = None,
) -> ReleaseResult:
    path = normalizer.local_resource_path(row)
    if extra_roots is None:
        # Older rows point straight at the temp staging dir.
        extra_roots = (str(uploads.staging_dir()),)
    result = release_local_file(path, root=root or config.upload_root(), extra_roots=extra_roots)
    if not result.ok:
        logger.error(
            "entry_resource_release_failed entry_id=%s path=%s error=%s",
            row.get("id"),
            result.path,
            result.error,
        )
    return result


async def delete_entry(entry_id: int, *, user_id: int, entries: EntryRepository) -> dict:
    row = await entries.delete(entry_id, user_id=user_id)
    if row is None:
        raise NotFound("Entry not found.")

    # Row is gone either way; cleanup outcome only gets logged.
    release = release_entry_resources(row)
    logger.info("entry_deleted entry_id=%s user_id=%s resource=%s", entry_id, user_id, release.status)
    return {"message": "Entry deleted successfully", "id": row.get("id")}
