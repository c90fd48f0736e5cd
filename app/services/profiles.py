"""Profiles: sign-up from the identity provider, owner reads and guarded updates."""

from datetime import datetime
from typing import Any, Iterable

from beanie import PydanticObjectId
from beanie.operators import In
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from app.core.audit import announce, log_transaction
from app.core.config import get_settings
from app.core.exceptions import (
    BadRequestError,
    ForbiddenError,
    ProfileNotFoundError,
    UnauthorizedError,
)
from app.core.logging import get_logger
from app.db.init import transaction
from app.models.profile import BALANCE_FIELDS, STATUSES, Profile
from app.models.transaction_record import STATUS_CHANGE
from app.services import authorization
from app.services import credits as credits_service
from app.services import roles as roles_service

log = get_logger(__name__)


def verify_google_id_token(token: str) -> dict:
    """Verify Google ID token; return decoded claims (sub, email, name, picture, etc.)."""
    settings = get_settings()
    try:
        claims = id_token.verify_oauth2_token(
            token,
            google_requests.Request(),
            settings.google_client_id,
        )
        return claims
    except (ValueError, google_exceptions.GoogleAuthError) as e:
        raise UnauthorizedError(f"Invalid Google token: {e}") from e


def new_profile(email: str, signup: dict[str, Any] | None = None, google_sub: str | None = None) -> Profile:
    """Defaults applied when an identity first signs in. Agents need a REN number."""
    settings = get_settings()
    signup = {k: v for k, v in (signup or {}).items() if v is not None}
    user_type = signup.get("user_type")
    if user_type == "agent":
        if not (signup.get("ren_number") or "").strip():
            raise BadRequestError("REN number is required for agents")
        listing, boosting = settings.agent_listing_credits, settings.agent_boosting_credits
    else:
        listing, boosting = settings.default_listing_credits, settings.default_boosting_credits
    return Profile(
        google_sub=google_sub,
        email=email,
        full_name=signup.get("full_name", ""),
        user_type=user_type,
        phone=signup.get("phone"),
        country=signup.get("country"),
        ren_number=signup.get("ren_number"),
        agency_name=signup.get("agency_name"),
        listing_credits=listing,
        boosting_credits=boosting,
        last_login_at=datetime.utcnow(),
    )


async def upsert_profile_from_google(claims: dict, signup: dict[str, Any] | None = None) -> Profile:
    google_sub = claims.get("sub")
    if not google_sub:
        raise BadRequestError("Missing sub in token")
    email = claims.get("email") or ""

    profile = await Profile.find_one(Profile.google_sub == google_sub)
    if profile:
        now = datetime.utcnow()
        await Profile.find_one({"_id": profile.id}).update(
            {"$set": {
                "email": email,
                "avatar_url": claims.get("picture") or profile.avatar_url,
                "last_login_at": now,
                "updated_at": now,
            }}
        )
        profile = await Profile.get(profile.id)
        log.info("profile_login", profile_id=str(profile.id), email=profile.email)
        return profile

    signup = dict(signup or {})
    signup.setdefault("full_name", claims.get("name") or "")
    profile = new_profile(email, signup, google_sub=google_sub)
    profile.avatar_url = claims.get("picture")
    await profile.insert()
    log.info("profile_created", profile_id=str(profile.id), email=profile.email, user_type=profile.user_type)
    return profile


def access_token_payload(profile: Profile) -> dict:
    return {"profile_id": str(profile.id), "session_version": profile.session_version}


async def get_profile(actor: Profile, target_id: PydanticObjectId) -> Profile:
    if not authorization.can_read_profile(actor.id, target_id):
        raise ForbiddenError("You can only view your own profile")
    profile = await Profile.get(target_id)
    if profile is None:
        raise ProfileNotFoundError()
    return profile


async def update_profile(actor: Profile, target_id: PydanticObjectId, changes: dict[str, Any]) -> Profile:
    """
    Owner edits pass straight through. Role, balance and status columns are guarded:
    non-admins are refused, admins are routed through the audited workflows. Other
    users' rows are reachable only through those guarded columns.
    """
    actor_is_admin = await authorization.is_admin(actor.id)
    plain = set(changes) - {"role", "status", *BALANCE_FIELDS}
    if target_id != actor.id and (plain or not actor_is_admin):
        raise ForbiddenError("You can only update your own profile")
    profile = await Profile.get(target_id)
    if profile is None:
        raise ProfileNotFoundError()
    authorization.guard_profile_changes(profile, changes, actor_is_admin=actor_is_admin)
    if changes.get("user_type", profile.user_type) == "agent" and not (
        changes.get("ren_number", profile.ren_number) or ""
    ).strip():
        raise BadRequestError("REN number is required for agents")

    changes = dict(changes)
    new_role = changes.pop("role", None)
    new_status = changes.pop("status", None)
    balances = {field: changes.pop(field) for field in BALANCE_FIELDS if field in changes}

    if new_role is not None and new_role != profile.role:
        await roles_service.set_role(actor.id, target_id, new_role)
    for field, value in balances.items():
        delta = value - getattr(profile, field)
        if delta:
            await credits_service.adjust_balance(
                target_id, delta, "Profile edit", actor.id, credit_type=field.removesuffix("_credits")
            )
    if new_status is not None and new_status != profile.status:
        await set_status(actor.id, target_id, new_status)

    if changes:
        # edited columns only; balances belong to the ledger
        await Profile.find_one({"_id": target_id}).update(
            {"$set": {**changes, "updated_at": datetime.utcnow()}}
        )
    return await Profile.get(target_id)


async def set_status(actor_id: PydanticObjectId, target_id: PydanticObjectId, new_status: str) -> dict[str, Any]:
    """Account moderation (pending / approved / rejected / suspended)."""
    await authorization.require_admin(actor_id)
    if new_status not in STATUSES:
        raise BadRequestError("Invalid status. Must be pending, approved, rejected, or suspended")
    now = datetime.utcnow()
    async with transaction() as session:
        profile = await Profile.get(target_id, session=session)
        if profile is None:
            raise ProfileNotFoundError()
        old_status = profile.status
        fields: dict[str, Any] = {"status": new_status, "updated_at": now}
        if new_status == "approved":
            fields.update({"approved_by": actor_id, "approved_at": now})
        await Profile.find_one({"_id": target_id}, session=session).update({"$set": fields}, session=session)
        record = await log_transaction(
            target_id,
            STATUS_CHANGE,
            {"old_status": old_status, "new_status": new_status},
            performed_by=actor_id,
            session=session,
        )
    log.info("status_changed", user_id=str(target_id), old_status=old_status, new_status=new_status)
    await announce(record)
    return {"success": True, "user_id": str(target_id), "old_status": old_status, "new_status": new_status}


async def list_profiles(actor_id: PydanticObjectId) -> list[Profile]:
    await authorization.require_admin(actor_id)
    return await Profile.find_all().sort(-Profile.created_at).to_list()


async def emails_by_id(ids: Iterable[PydanticObjectId | None]) -> dict[PydanticObjectId, str]:
    wanted = list({i for i in ids if i is not None})
    if not wanted:
        return {}
    profiles = await Profile.find(In(Profile.id, wanted)).to_list()
    return {p.id: p.email for p in profiles}


def profile_to_dict(profile: Profile) -> dict[str, Any]:
    return {
        "id": str(profile.id),
        "email": profile.email,
        "full_name": profile.full_name,
        "role": profile.role,
        "user_type": profile.user_type,
        "status": profile.status,
        "listing_credits": profile.listing_credits,
        "boosting_credits": profile.boosting_credits,
        "phone": profile.phone,
        "country": profile.country,
        "company": profile.company,
        "bio": profile.bio,
        "avatar_url": profile.avatar_url,
        "preferred_contact_method": profile.preferred_contact_method,
        "ren_number": profile.ren_number,
        "agency_name": profile.agency_name,
        "created_at": profile.created_at.isoformat(),
        "updated_at": profile.updated_at.isoformat(),
    }
