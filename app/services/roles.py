"""Role promotion and demotion (super admin only)."""

from datetime import datetime
from typing import Any

from beanie import PydanticObjectId

from app.core.audit import announce, log_transaction
from app.core.exceptions import BadRequestError, ProfileNotFoundError
from app.core.logging import get_logger
from app.db.init import transaction
from app.models.profile import ROLES, Profile
from app.models.transaction_record import ROLE_CHANGE
from app.services import authorization

log = get_logger(__name__)


async def set_role(
    actor_id: PydanticObjectId,
    target_id: PydanticObjectId,
    new_role: str,
) -> dict[str, Any]:
    await authorization.require_super_admin(actor_id)
    if new_role not in ROLES:
        raise BadRequestError("Invalid role. Must be user, admin, or super_admin")
    async with transaction() as session:
        profile = await Profile.get(target_id, session=session)
        if profile is None:
            raise ProfileNotFoundError()
        old_role = profile.role
        await Profile.find_one({"_id": target_id}, session=session).update(
            {"$set": {"role": new_role, "updated_at": datetime.utcnow()}},
            session=session,
        )
        record = await log_transaction(
            target_id,
            ROLE_CHANGE,
            {"old_role": old_role, "new_role": new_role},
            performed_by=actor_id,
            session=session,
        )
    log.info("role_changed", user_id=str(target_id), old_role=old_role, new_role=new_role)
    await announce(record)
    return {"success": True, "user_id": str(target_id), "old_role": old_role, "new_role": new_role}
