"""
Dependency providers for entry routes.

Overridden in tests through `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from core.blobstore import BlobStore, BlobStoreError, blob_store_from_env
from core.db import Database, get_database
from core.errors import UpstreamError

from .repository import EntryRepository


def get_entry_repository(db: Database = Depends(get_database)) -> EntryRepository:
    return EntryRepository(db)


@lru_cache(maxsize=1)
def _blob_store() -> BlobStore:
    return blob_store_from_env()


def get_blob_store() -> BlobStore:
    try:
        return _blob_store()
    except BlobStoreError as exc:
        raise UpstreamError(f"blob_store_unavailable: {exc}") from exc
