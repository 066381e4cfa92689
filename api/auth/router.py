"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from . import schemas, service
from .dependencies import get_current_user, get_user_repository
from .repository import UserRepository

router = APIRouter(prefix="/auth")


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: schemas.RegisterRequest,
    users: UserRepository = Depends(get_user_repository),
) -> schemas.AuthResponse:
    return await service.register(request, users=users)


@router.post("/login")
async def login(
    request: schemas.LoginRequest,
    users: UserRepository = Depends(get_user_repository),
) -> schemas.AuthResponse:
    return await service.login(request, users=users)


@router.get("/me")
async def me(current_user: dict = Depends(get_current_user)) -> schemas.MeResponse:
    return service.me(current_user)


@router.post("/logout")
async def logout() -> dict:
    # Access tokens are stateless; the client just drops its copy.
    return {"message": "Logged out successfully!"}
