"""Directory user listing and profile editing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from sigaudit.schemas.profile import Profile, ProfileUpdate

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[Profile])
async def list_users(request: Request) -> list[Profile]:
    """Enabled directory users with a mail address."""
    return await request.app.state.profile_service.list_users()


@router.get("/{user}", response_model=Profile)
async def get_user(user: str, request: Request) -> Profile:
    return await request.app.state.profile_service.get(user)


@router.patch("/{user}", response_model=Profile)
async def update_user(user: str, body: ProfileUpdate, request: Request) -> Profile:
    """Edit directory attributes; omitted fields are left as they are, "" clears one."""
    return await request.app.state.profile_service.update(user, body)
