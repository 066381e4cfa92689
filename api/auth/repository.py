"""
User persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core.db import Database
from core.errors import Conflict


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, *, email: str, password_hash: str) -> dict[str, Any]:
        try:
            row = await self.db.fetch_one(
                """
                INSERT INTO users (email, password_hash)
                VALUES ($1, $2)
                RETURNING id, email, created_at
                """,
                normalize_email(email),
                password_hash,
            )
        except asyncpg.UniqueViolationError as exc:
            # Lost a race with a concurrent registration for the same email.
            raise Conflict("User already exists.") from exc
        if row is None:
            raise RuntimeError("Failed to create user.")
        return row

    async def get_by_email(self, email: str) -> dict[str, Any] | None:
        return await self.db.fetch_one(
            """
            SELECT id, email, password_hash, created_at
            FROM users
            WHERE email = $1
            """,
            normalize_email(email),
        )

    async def get_by_id(self, user_id: int) -> dict[str, Any] | None:
        return await self.db.fetch_one(
            """
            SELECT id, email, password_hash, created_at
            FROM users
            WHERE id = $1
            """,
            user_id,
        )
