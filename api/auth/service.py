"""
Auth business logic.
"""

from __future__ import annotations

import logging

from core.errors import AuthError, Conflict, ValidationError

from . import schemas, security
from .repository import UserRepository

logger = logging.getLogger(__name__)


def _to_user_response(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=int(user_row["id"]),
        email=str(user_row["email"]),
        created_at=user_row["created_at"],
    )


def _auth_response(user_row: dict) -> schemas.AuthResponse:
    access_token = security.build_access_token(
        user_id=int(user_row["id"]),
        email=str(user_row["email"]),
    )
    return schemas.AuthResponse(user=_to_user_response(user_row), access_token=access_token)


async def register(payload: schemas.RegisterRequest, *, users: UserRepository) -> schemas.AuthResponse:
    existing = await users.get_by_email(payload.email)
    if existing is not None:
        raise Conflict("User already exists.")

    try:
        password_hash = security.hash_password(payload.password)
    except security.AuthSecurityError as exc:
        raise ValidationError(str(exc)) from exc
    user_row = await users.create(email=payload.email, password_hash=password_hash)
    logger.info("user_registered user_id=%s", user_row["id"])
    return _auth_response(user_row)


async def login(payload: schemas.LoginRequest, *, users: UserRepository) -> schemas.AuthResponse:
    user_row = await users.get_by_email(payload.email)
    if user_row is None:
        raise AuthError("Invalid credentials.")

    is_valid = security.verify_password(payload.password, str(user_row.get("password_hash") or ""))
    if not is_valid:
        raise AuthError("Invalid credentials.")

    return _auth_response(user_row)


async def get_user_from_access_token(access_token: str, *, users: UserRepository) -> dict:
    try:
        user_id = security.user_id_from_token(access_token)
    except security.AuthSecurityError as exc:
        raise AuthError(str(exc)) from exc

    user_row = await users.get_by_id(user_id)
    if user_row is None:
        raise AuthError("User not found.")
    return user_row


def me(user_row: dict) -> schemas.MeResponse:
    return schemas.MeResponse(user=_to_user_response(user_row))
