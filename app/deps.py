"""Shared FastAPI dependencies."""

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request

from app.core.exceptions import UnauthorizedError
from app.core.logging import bind_actor
from app.core.security import extract_bearer_token, load_access_token
from app.models.profile import Profile
from app.services import authorization


async def get_current_profile(request: Request) -> Profile:
    """Dependency: verify the bearer token and return the caller's Profile."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        raise UnauthorizedError("Missing token")
    payload = load_access_token(token)
    if not payload or not payload.get("profile_id"):
        raise UnauthorizedError("Invalid token")
    try:
        profile_id = PydanticObjectId(payload["profile_id"])
    except (InvalidId, TypeError):
        raise UnauthorizedError("Invalid token") from None
    profile = await Profile.get(profile_id)
    if not profile or payload.get("session_version") != profile.session_version:
        raise UnauthorizedError("Invalid token")
    bind_actor(str(profile.id), profile.role)
    return profile


async def require_admin(profile: Profile = Depends(get_current_profile)) -> Profile:
    """Dependency: caller must hold the admin capability (admin or super_admin)."""
    await authorization.require_admin(profile.id)
    return profile


async def require_super_admin(profile: Profile = Depends(get_current_profile)) -> Profile:
    await authorization.require_super_admin(profile.id)
    return profile
