from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import pytest

# main.py mounts the local upload root at import time.
os.environ.setdefault("UPLOAD_ROOT", tempfile.mkdtemp(prefix="diary-uploads-"))
os.environ.setdefault("BLOB_STORE", "local")
os.environ.setdefault("JWT_SECRET", "test-secret-for-the-diary-api-suite-000")

from core.blobstore import BlobStoreError  # noqa: E402
from core.errors import Conflict, NoOpUpdate  # noqa: E402
from entries.normalizer import StorageRecord  # noqa: E402
from entries.query_builder import ENTRY_UPDATABLE_FIELDS, present_fields  # noqa: E402

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeDatabase:
    """
    Records statements and replays queued results.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, tuple[Any, ...]]] = []
        self.results: list[Any] = []

    def queue(self, *results: Any) -> None:
        self.results.extend(results)

    def _next(self, default: Any) -> Any:
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, BaseException):
                raise result
            return result
        return default

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        self.calls.append(("fetch_one", sql, args))
        return self._next(None)

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        self.calls.append(("fetch_all", sql, args))
        return self._next([])


class InMemoryEntryRepository:
    """
    Same contract as `EntryRepository`, backed by a dict of rows.
    """

    def __init__(self) -> None:
        self.rows: dict[int, dict[str, Any]] = {}
        self._next_id = 1

    def add_row(self, **row: Any) -> dict[str, Any]:
        entry_id = row.pop("id", None) or self._next_id
        self._next_id = max(self._next_id, entry_id) + 1
        stored = {"id": entry_id, "created_at": BASE_TIME + timedelta(minutes=entry_id), **row}
        self.rows[entry_id] = stored
        return dict(stored)

    async def insert(self, *, user_id: int, record: StorageRecord) -> dict[str, Any]:
        return self.add_row(
            user_id=user_id,
            type=record.type,
            title=record.title,
            content=record.content,
            media_urls=record.media_urls,
            audio_url=record.audio_url,
            duration=record.duration,
        )

    async def list_for_user(self, *, user_id: int, limit: int, offset: int) -> list[dict[str, Any]]:
        owned = [row for row in self.rows.values() if row["user_id"] == user_id]
        owned.sort(key=lambda row: (row["created_at"], row["id"]), reverse=True)
        return [dict(row) for row in owned[offset : offset + limit]]

    async def get(self, entry_id: int, *, user_id: int) -> dict[str, Any] | None:
        row = self.rows.get(entry_id)
        if row is None or row["user_id"] != user_id:
            return None
        return dict(row)

    async def update(self, entry_id: int, *, user_id: int, changes: Mapping[str, Any]) -> dict[str, Any] | None:
        assignments = present_fields(ENTRY_UPDATABLE_FIELDS, changes)
        if not assignments:
            raise NoOpUpdate()
        row = self.rows.get(entry_id)
        if row is None or row["user_id"] != user_id:
            return None
        for field, value in assignments:
            row[field.column] = value
        return dict(row)

    async def delete(self, entry_id: int, *, user_id: int) -> dict[str, Any] | None:
        row = self.rows.get(entry_id)
        if row is None or row["user_id"] != user_id:
            return None
        return self.rows.pop(entry_id)


class InMemoryUserRepository:
    def __init__(self) -> None:
        self.rows: dict[int, dict[str, Any]] = {}

    async def create(self, *, email: str, password_hash: str) -> dict[str, Any]:
        email = email.strip().lower()
        if any(row["email"] == email for row in self.rows.values()):
            raise Conflict("User already exists.")
        user_id = len(self.rows) + 1
        row = {"id": user_id, "email": email, "password_hash": password_hash, "created_at": BASE_TIME}
        self.rows[user_id] = row
        return dict(row)

    async def get_by_email(self, email: str) -> dict[str, Any] | None:
        email = email.strip().lower()
        for row in self.rows.values():
            if row["email"] == email:
                return dict(row)
        return None

    async def get_by_id(self, user_id: int) -> dict[str, Any] | None:
        row = self.rows.get(user_id)
        return dict(row) if row is not None else None


class FakeBlobStore:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: list[tuple[bytes, str, str]] = []

    async def upload(self, data: bytes, *, kind: str, filename: str) -> str:
        if self.fail:
            raise BlobStoreError("media host unavailable")
        self.uploads.append((data, kind, filename))
        return f"https://media.example.com/{kind}/{len(self.uploads)}-{filename}"


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def entry_repo() -> InMemoryEntryRepository:
    return InMemoryEntryRepository()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()
