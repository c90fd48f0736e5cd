"""Capability checks and the profile column guard.

Capability predicates look a single profile up by primary key. They never run as part
of another query over the profiles collection, so a permission check can't recurse
into the data it is protecting.
"""

from typing import Any

from beanie import PydanticObjectId

from app.core.exceptions import ForbiddenError
from app.models.profile import ADMIN_ROLES, BALANCE_FIELDS, Profile


async def get_role(profile_id: PydanticObjectId | None) -> str | None:
    if profile_id is None:
        return None
    profile = await Profile.get(profile_id)
    return profile.role if profile else None


async def is_admin(profile_id: PydanticObjectId | None) -> bool:
    """Admin capability; super admins are admins too."""
    return await get_role(profile_id) in ADMIN_ROLES


async def is_super_admin(profile_id: PydanticObjectId | None) -> bool:
    return await get_role(profile_id) == "super_admin"


async def require_admin(profile_id: PydanticObjectId | None) -> None:
    if not await is_admin(profile_id):
        raise ForbiddenError("Admin access required")


async def require_super_admin(profile_id: PydanticObjectId | None) -> None:
    if not await is_super_admin(profile_id):
        raise ForbiddenError("Super admin access required")


def can_read_profile(actor_id: PydanticObjectId, target_id: PydanticObjectId) -> bool:
    """Direct reads are owner-only; listing others goes through the admin endpoint."""
    return actor_id == target_id


def guard_profile_changes(
    current: Profile,
    changes: dict[str, Any],
    *,
    actor_is_admin: bool,
    service: bool = False,
) -> None:
    """Reject writes to privileged columns unless the caller is elevated."""
    if service or actor_is_admin:
        return
    if "role" in changes and changes["role"] != current.role:
        raise ForbiddenError("role changes require elevated privilege")
    for field in BALANCE_FIELDS:
        if field in changes and changes[field] != getattr(current, field):
            raise ForbiddenError("balance changes require the ledger API")
    if "status" in changes and changes["status"] != current.status:
        raise ForbiddenError("status changes require elevated privilege")
