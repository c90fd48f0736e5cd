from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.core.security import create_access_token
from app.deps import get_current_profile
from app.models.profile import Profile, UserType
from app.services import profiles as profile_service

router = APIRouter()


class GoogleAuthRequest(BaseModel):
    id_token: str
    # Only read on first sign-in
    user_type: UserType | None = None
    full_name: str | None = None
    ren_number: str | None = None
    agency_name: str | None = None
    phone: str | None = None
    country: str | None = None


@router.post("/google")
async def auth_google(body: GoogleAuthRequest):
    """Exchange a Google ID token for a bearer access token."""
    claims = profile_service.verify_google_id_token(body.id_token)
    signup = body.model_dump(exclude={"id_token"}, exclude_none=True)
    profile = await profile_service.upsert_profile_from_google(claims, signup)
    token = create_access_token(profile_service.access_token_payload(profile))
    return {
        "access_token": token,
        "token_type": "bearer",
        "profile": profile_service.profile_to_dict(profile),
    }


@router.get("/me")
async def auth_me(profile: Profile = Depends(get_current_profile)):
    """Return the caller's profile. Requires a bearer token."""
    return profile_service.profile_to_dict(profile)
