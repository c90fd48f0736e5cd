import pytest
from beanie import PydanticObjectId

from app.core.exceptions import BadRequestError, ForbiddenError, ProfileNotFoundError
from app.models.profile import Profile
from app.models.transaction_record import TransactionRecord
from app.services import authorization, roles


async def test_super_admin_promotes(super_admin, user):
    result = await roles.set_role(super_admin.id, user.id, "admin")
    assert result == {"success": True, "user_id": str(user.id), "old_role": "user", "new_role": "admin"}
    assert (await Profile.get(user.id)).role == "admin"
    assert await authorization.is_admin(user.id)
    assert not await authorization.is_super_admin(user.id)

    [record] = await TransactionRecord.find(TransactionRecord.user_id == user.id).to_list()
    assert record.action_type == "role_change"
    assert record.details == {"old_role": "user", "new_role": "admin"}
    assert record.performed_by == super_admin.id


async def test_admin_cannot_promote(admin, user):
    with pytest.raises(ForbiddenError):
        await roles.set_role(admin.id, user.id, "super_admin")
    with pytest.raises(ForbiddenError):
        await roles.set_role(admin.id, admin.id, "super_admin")
    assert (await Profile.get(admin.id)).role == "admin"


async def test_invalid_role(super_admin, user):
    with pytest.raises(BadRequestError, match="Invalid role"):
        await roles.set_role(super_admin.id, user.id, "owner")


async def test_unknown_target(super_admin):
    with pytest.raises(ProfileNotFoundError):
        await roles.set_role(super_admin.id, PydanticObjectId(), "admin")
