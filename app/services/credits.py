"""Credits ledger: balance mutations and their transaction records, one atomic unit each."""

from datetime import datetime
from typing import Any, Callable

from beanie import PydanticObjectId

from app.core.audit import announce, log_transaction
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    InsufficientCreditsError,
    ProfileNotFoundError,
)
from app.core.logging import get_logger
from app.core.pagination import paginate
from app.db.init import transaction
from app.models.profile import CREDIT_TYPES, Profile, balance_field
from app.models.transaction_record import (
    CREDIT_ADD,
    CREDIT_DEDUCT,
    CREDIT_USAGE,
    TransactionRecord,
)
from app.services import authorization

log = get_logger(__name__)

# Compare-and-set attempts before a balance write gives up under contention
MAX_WRITE_ATTEMPTS = 5


def validate_credit_type(credit_type: str) -> str:
    if credit_type not in CREDIT_TYPES:
        raise BadRequestError(f"Invalid credit type: {credit_type}")
    return credit_type


async def get_balances(profile_id: PydanticObjectId) -> dict[str, int]:
    profile = await Profile.get(profile_id)
    if not profile:
        raise ProfileNotFoundError()
    return {
        "listing_credits": profile.listing_credits,
        "boosting_credits": profile.boosting_credits,
    }


async def _write_balance(
    profile_id: PydanticObjectId,
    field: str,
    compute: Callable[[int], int],
    session=None,
) -> tuple[int, int]:
    """
    Read the balance, compute the new one and write it only if nobody changed it in
    between. Returns (old, new). ``compute`` may raise to refuse the change.
    """
    for attempt in range(MAX_WRITE_ATTEMPTS):
        profile = await Profile.get(profile_id, session=session)
        if profile is None:
            raise ProfileNotFoundError()
        old = getattr(profile, field)
        new = compute(old)
        result = await Profile.find_one({"_id": profile_id, field: old}, session=session).update(
            {"$set": {field: new, "updated_at": datetime.utcnow()}},
            session=session,
        )
        if result.matched_count == 1:
            return old, new
        log.warning("balance_write_conflict", profile_id=str(profile_id), field=field, attempt=attempt + 1)
    raise ConflictError("Balance changed concurrently, please retry")


async def _restore_balance(profile_id: PydanticObjectId, field: str, old: int, new: int) -> None:
    """Put ``old`` back unless the row moved on since our write."""
    result = await Profile.find_one({"_id": profile_id, field: new}).update(
        {"$set": {field: old, "updated_at": datetime.utcnow()}}
    )
    log.warning(
        "balance_write_reverted",
        profile_id=str(profile_id),
        field=field,
        restored=result.matched_count == 1,
    )


async def _record_or_restore(
    profile_id: PydanticObjectId,
    field: str,
    old: int,
    new: int,
    action_type: str,
    details: dict[str, Any],
    performed_by: PydanticObjectId | None,
    credit_type: str,
    session=None,
) -> TransactionRecord:
    """
    Append the record for a balance write. Without a transaction a failed insert
    leaves the balance moved, so the write is undone before re-raising.
    """
    try:
        return await log_transaction(
            profile_id,
            action_type,
            details,
            performed_by=performed_by,
            credit_type=credit_type,
            session=session,
        )
    except Exception:
        if session is None:
            await _restore_balance(profile_id, field, old, new)
        raise


async def apply_delta(
    target_id: PydanticObjectId,
    delta: int,
    reason: str | None,
    acting_id: PydanticObjectId | None,
    credit_type: str = "listing",
    session=None,
    extra_details: dict[str, Any] | None = None,
) -> tuple[dict[str, Any], TransactionRecord]:
    """Floor-at-zero adjustment plus its record, inside the caller's atomic unit."""
    field = balance_field(credit_type)
    old, new = await _write_balance(target_id, field, lambda current: max(0, current + delta), session)
    details = {
        "old_credits": old,
        "new_credits": new,
        "delta": delta,
        "reason": reason,
        "credit_type": credit_type,
        **(extra_details or {}),
    }
    record = await _record_or_restore(
        target_id,
        field,
        old,
        new,
        CREDIT_ADD if delta > 0 else CREDIT_DEDUCT,
        details,
        acting_id,
        credit_type,
        session,
    )
    result = {
        "success": True,
        "user_id": str(target_id),
        "old_credits": old,
        "new_credits": new,
        "delta": delta,
        "credit_type": credit_type,
        "transaction_id": str(record.id),
    }
    return result, record


async def debit(
    owner_id: PydanticObjectId,
    amount: int,
    reason: str | None,
    credit_type: str = "listing",
    session=None,
    action_type: str = CREDIT_USAGE,
    extra_details: dict[str, Any] | None = None,
) -> tuple[dict[str, Any], TransactionRecord]:
    """All-or-nothing debit by the owner, inside the caller's atomic unit."""
    if amount <= 0:
        raise BadRequestError("Amount must be positive")
    field = balance_field(credit_type)

    def _take(current: int) -> int:
        if current < amount:
            raise InsufficientCreditsError(current, amount, credit_type)
        return current - amount

    old, new = await _write_balance(owner_id, field, _take, session)
    details = {
        "old_credits": old,
        "new_credits": new,
        "amount_used": amount,
        "reason": reason,
        "credit_type": credit_type,
        **(extra_details or {}),
    }
    record = await _record_or_restore(
        owner_id, field, old, new, action_type, details, owner_id, credit_type, session
    )
    result = {
        "success": True,
        "old_credits": old,
        "new_credits": new,
        "amount_used": amount,
        "credit_type": credit_type,
        "transaction_id": str(record.id),
    }
    return result, record


async def adjust_balance(
    target_id: PydanticObjectId,
    delta: int,
    reason: str | None,
    acting_id: PydanticObjectId | None,
    credit_type: str = "listing",
) -> dict[str, Any]:
    """
    Set balance to max(0, balance + delta) and append a credit_add / credit_deduct record.
    ``acting_id`` None means a system adjustment; otherwise the actor must be admin-capable.
    """
    validate_credit_type(credit_type)
    if acting_id is not None:
        await authorization.require_admin(acting_id)
    async with transaction() as session:
        result, record = await apply_delta(target_id, delta, reason, acting_id, credit_type, session)
    log.info(
        "credits_adjusted",
        user_id=str(target_id),
        delta=delta,
        old=result["old_credits"],
        new=result["new_credits"],
        credit_type=credit_type,
        performed_by=str(acting_id) if acting_id else None,
    )
    await announce(record)
    return result


async def use_balance(
    owner_id: PydanticObjectId,
    amount: int,
    reason: str | None = "Credit usage",
    credit_type: str = "listing",
) -> dict[str, Any]:
    """Spend the caller's own credits. No partial debit: short balances fail untouched."""
    validate_credit_type(credit_type)
    async with transaction() as session:
        result, record = await debit(owner_id, amount, reason, credit_type, session)
    log.info("credits_used", user_id=str(owner_id), amount=amount, new=result["new_credits"], credit_type=credit_type)
    await announce(record)
    return result


async def list_transactions(
    actor_id: PydanticObjectId,
    limit: int = 50,
    offset: int = 0,
    user_id: PydanticObjectId | None = None,
) -> list[TransactionRecord]:
    """
    Role-filtered history, newest first: super admins see everything, admins see what
    they performed, users see records about themselves.
    """
    limit, offset = paginate(limit, offset)
    role = await authorization.get_role(actor_id)
    if role is None:
        raise ProfileNotFoundError()
    if role == "super_admin":
        query: dict[str, Any] = {}
        if user_id is not None:
            query["user_id"] = user_id
    elif role == "admin":
        query = {"performed_by": actor_id}
        if user_id is not None:
            query["user_id"] = user_id
    else:
        query = {"user_id": actor_id}
    return (
        await TransactionRecord.find(query)
        .sort(-TransactionRecord.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )


def transaction_to_dict(record: TransactionRecord, emails: dict[PydanticObjectId, str] | None = None) -> dict[str, Any]:
    emails = emails or {}
    return {
        "id": str(record.id),
        "user_id": str(record.user_id),
        "user_email": emails.get(record.user_id),
        "action_type": record.action_type,
        "credit_type": record.credit_type,
        "details": record.details,
        "performed_by": str(record.performed_by) if record.performed_by else None,
        "performer_email": emails.get(record.performed_by, "System") if record.performed_by else "System",
        "created_at": record.created_at.isoformat(),
    }
