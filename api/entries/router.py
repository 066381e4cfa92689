"""
Entry API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile, status

from auth import dependencies as auth_dependencies
from core.blobstore import BlobStore

from . import schemas, service
from .dependencies import get_blob_store, get_entry_repository
from .repository import EntryRepository

router = APIRouter(prefix="/entries")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_entry(
    request: schemas.EntryCreateRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    entries: EntryRepository = Depends(get_entry_repository),
) -> dict:
    return await service.create_entry(
        request.payload(),
        user_id=int(current_user["id"]),
        entries=entries,
    )


@router.post("/voice", status_code=status.HTTP_201_CREATED)
async def create_voice_entry(
    audio: UploadFile | None = File(default=None),
    title: str | None = Form(default=None, max_length=500),
    duration: str | None = Form(default=None),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    entries: EntryRepository = Depends(get_entry_repository),
    blob_store: BlobStore = Depends(get_blob_store),
) -> dict:
    """
    Multipart upload: `audio` file plus optional `title` and `duration`
    (seconds). The recording is stored in the blob store before the row is
    written.
    """
    return await service.create_voice_entry(
        audio,
        title=title,
        duration=duration,
        user_id=int(current_user["id"]),
        entries=entries,
        blob_store=blob_store,
    )


@router.get("")
async def list_entries(
    page: int = Query(1, le=service.MAX_PAGE),
    limit: int = Query(service.DEFAULT_PAGE_LIMIT),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    entries: EntryRepository = Depends(get_entry_repository),
) -> dict:
    """
    Newest first. Out-of-range `page` / `limit` are clamped, except a page
    whose offset would not fit in a bigint.
    """
    return await service.list_entries(
        user_id=int(current_user["id"]),
        page=page,
        limit=limit,
        entries=entries,
    )


@router.get("/{entry_id}")
async def get_entry(
    entry_id: int = Path(..., ge=service.BIGINT_MIN, le=service.BIGINT_MAX),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    entries: EntryRepository = Depends(get_entry_repository),
) -> dict:
    return await service.get_entry(entry_id, user_id=int(current_user["id"]), entries=entries)


@router.put("/{entry_id}")
async def update_entry(
    request: schemas.EntryUpdateRequest,
    entry_id: int = Path(..., ge=service.BIGINT_MIN, le=service.BIGINT_MAX),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    entries: EntryRepository = Depends(get_entry_repository),
) -> dict:
    return await service.update_entry(
        entry_id,
        request.payload(),
        user_id=int(current_user["id"]),
        entries=entries,
    )


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: int = Path(..., ge=service.BIGINT_MIN, le=service.BIGINT_MAX),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    entries: EntryRepository = Depends(get_entry_repository),
) -> dict:
    return await service.delete_entry(entry_id, user_id=int(current_user["id"]), entries=entries)
