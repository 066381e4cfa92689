"""
Entry persistence (raw SQL).

Every statement is scoped by (id, user_id) so that an entry owned by
someone else is indistinguishable from a missing one.
"""

from __future__ import annotations

from typing import Any, Mapping

from core.db import Database

from .normalizer import StorageRecord
from .query_builder import ENTRY_UPDATABLE_FIELDS, build_partial_update

ENTRY_COLUMNS = (
    "id",
    "user_id",
    "type",
    "title",
    "content",
    "media_urls",
    "audio_url",
    "duration",
    "created_at",
)

_COLUMNS_SQL = ", ".join(ENTRY_COLUMNS)


class EntryRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def insert(self, *, user_id: int, record: StorageRecord) -> dict[str, Any]:
        row = await self.db.fetch_one(
            f"""
            INSERT INTO entries (user_id, type, title, content, media_urls, audio_url, duration)
            VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7)
            RETURNING {_COLUMNS_SQL}
            """,
            user_id,
            record.type,
            record.title,
            record.content,
            record.media_urls,
            record.audio_url,
            record.duration,
        )
        if row is None:
            raise RuntimeError("Failed to insert entry.")
        return row

    async def list_for_user(self, *, user_id: int, limit: int, offset: int) -> list[dict[str, Any]]:
        return await self.db.fetch_all(
            f"""
            SELECT {_COLUMNS_SQL}
            FROM entries
            WHERE user_id = $1
            ORDER BY created_at DESC, id DESC
            LIMIT $2
            OFFSET $3
            """,
            user_id,
            limit,
            offset,
        )

    async def get(self, entry_id: int, *, user_id: int) -> dict[str, Any] | None:
        return await self.db.fetch_one(
            f"""
            SELECT {_COLUMNS_SQL}
            FROM entries
            WHERE id = $1
              AND user_id = $2
            """,
            entry_id,
            user_id,
        )

    async def update(
        self,
        entry_id: int,
        *,
        user_id: int,
        changes: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """
        Overwrite the fields present in `changes`; None when nothing matched.
        """
        statement = build_partial_update(
            "entries",
            ENTRY_UPDATABLE_FIELDS,
            changes,
            where=(("id", entry_id), ("user_id", user_id)),
            returning=ENTRY_COLUMNS,
        )
        return await self.db.fetch_one(statement.sql, *statement.args)

    async def delete(self, entry_id: int, *, user_id: int) -> dict[str, Any] | None:
        """
        Delete and return the removed row (for resource cleanup), or None.
        """
        return await self.db.fetch_one(
            f"""
            DELETE FROM entries
            WHERE id = $1
              AND user_id = $2
            RETURNING {_COLUMNS_SQL}
            """,
            entry_id,
            user_id,
        )
