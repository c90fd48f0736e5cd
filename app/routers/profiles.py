from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.ids import parse_id
from app.deps import get_current_profile
from app.models.profile import Profile, ProfileStatus, Role, UserType
from app.services import profiles as profile_service

router = APIRouter()


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    country: str | None = None
    company: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    preferred_contact_method: Literal["email", "phone", "whatsapp"] | None = None
    user_type: UserType | None = None
    ren_number: str | None = None
    agency_name: str | None = None
    agency_license: str | None = None
    years_experience: int | None = Field(default=None, ge=0)
    # Guarded columns: refused for non-admins, routed through the audited workflows for admins
    role: Role | None = None
    status: ProfileStatus | None = None
    listing_credits: int | None = Field(default=None, ge=0)
    boosting_credits: int | None = Field(default=None, ge=0)


@router.get("/me")
async def my_profile(profile: Profile = Depends(get_current_profile)):
    return profile_service.profile_to_dict(profile)


@router.get("/{profile_id}")
async def read_profile(profile_id: str, profile: Profile = Depends(get_current_profile)):
    """Owner-only read. Admin listings go through /v1/admin/profiles."""
    target = await profile_service.get_profile(profile, parse_id(profile_id, "profile id"))
    return profile_service.profile_to_dict(target)


@router.patch("/{profile_id}")
async def update_profile(
    profile_id: str,
    body: ProfileUpdate,
    profile: Profile = Depends(get_current_profile),
):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    updated = await profile_service.update_profile(profile, parse_id(profile_id, "profile id"), changes)
    return profile_service.profile_to_dict(updated)
