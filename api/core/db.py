"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. FastAPI initializes it on startup and
closes it on shutdown (see `api/main.py`). Request handlers never touch the
pool directly: they receive a `Database` through the `get_database`
dependency, so tests can swap in a fake.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

_database: Database | None = None


def _sanitize_database_url(url: str) -> str:
    # asyncpg rejects libpq's `sslmode`; hosted Postgres URLs usually carry it.
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


class Database:
    """
    Thin wrapper over an asyncpg pool exposing the two queries the
    repositories need. Every write statement ends in RETURNING, so both go
    through `fetch_one`.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        row = await self._pool.fetchrow(sql, *args)
        return _record_to_dict(row) if row is not None else None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as a list of dicts.
        """
        rows = await self._pool.fetch(sql, *args)
        return [_record_to_dict(r) for r in rows]

    async def close(self) -> None:
        await self._pool.close()


async def init_pool() -> None:
    global _database
    if _database is not None:
        return None
    pool = await asyncpg.create_pool(
        dsn=database_url(),
        min_size=1,
        max_size=5,
        command_timeout=30,
    )
    _database = Database(pool)


async def close_pool() -> None:
    global _database
    if _database is None:
        return None
    await _database.close()
    _database = None


def get_database() -> Database:
    """
    FastAPI dependency returning the process-wide `Database`.
    """
    if _database is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _database
