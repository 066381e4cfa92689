"""
Auth dependencies for protected FastAPI routes.
"""

from __future__ import annotations

from fastapi import Depends, Header

from core.db import Database, get_database
from core.errors import AuthError

from . import service
from .repository import UserRepository


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise AuthError("Missing Authorization header.")

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise AuthError("Invalid Authorization header format.")

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise AuthError("Authorization must be: Bearer <token>.")
    return token


def get_user_repository(db: Database = Depends(get_database)) -> UserRepository:
    return UserRepository(db)


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


async def get_current_user(
    access_token: str = Depends(get_bearer_token),
    users: UserRepository = Depends(get_user_repository),
) -> dict:
    return await service.get_user_from_access_token(access_token, users=users)
