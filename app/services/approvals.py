"""Two-step credit changes: admins request, super admins approve or reject exactly once."""

from datetime import datetime
from typing import Any

from beanie import PydanticObjectId

from app.core.audit import announce, log_transaction
from app.core.exceptions import (
    BadRequestError,
    ProfileNotFoundError,
    RequestAlreadyProcessedError,
    RequestNotFoundError,
)
from app.core.logging import get_logger
from app.db.init import transaction
from app.models.pending_credit_request import APPROVED, PENDING, REJECTED, PendingCreditRequest
from app.models.profile import Profile
from app.models.transaction_record import CREDIT_REQUEST_REJECTED
from app.services import authorization
from app.services import credits as credits_service

log = get_logger(__name__)


async def request_change(
    actor_id: PydanticObjectId,
    target_id: PydanticObjectId,
    delta: int,
    reason: str | None,
    credit_type: str = "listing",
) -> PendingCreditRequest:
    """Admin files a balance change for super admin review. No balance effect yet."""
    await authorization.require_admin(actor_id)
    credits_service.validate_credit_type(credit_type)
    reason = (reason or "").strip()
    if not reason:
        raise BadRequestError("Reason is required")
    if not await Profile.get(target_id):
        raise ProfileNotFoundError()
    request = PendingCreditRequest(
        user_id=target_id,
        delta=delta,
        reason=reason,
        credit_type=credit_type,
        requested_by=actor_id,
    )
    await request.insert()
    log.info(
        "credit_request_created",
        request_id=str(request.id),
        user_id=str(target_id),
        delta=delta,
        credit_type=credit_type,
    )
    return request


async def _claim(
    request_id: PydanticObjectId,
    outcome: str,
    reviewer_id: PydanticObjectId,
    notes: str | None,
    session=None,
) -> PendingCreditRequest:
    """Move pending -> outcome in one conditional write; only one caller can win."""
    result = await PendingCreditRequest.find_one({"_id": request_id, "status": PENDING}, session=session).update(
        {
            "$set": {
                "status": outcome,
                "reviewed_by": reviewer_id,
                "reviewed_at": datetime.utcnow(),
                "review_notes": notes,
            }
        },
        session=session,
    )
    if result.matched_count != 1:
        existing = await PendingCreditRequest.get(request_id, session=session)
        if existing is None:
            raise RequestNotFoundError()
        raise RequestAlreadyProcessedError(f"Request already {existing.status}")
    return await PendingCreditRequest.get(request_id, session=session)


async def _release(request_id: PydanticObjectId, reviewer_id: PydanticObjectId) -> None:
    """Undo a claim whose ledger step failed (only needed without transactions)."""
    await PendingCreditRequest.find_one(
        {"_id": request_id, "status": APPROVED, "reviewed_by": reviewer_id}
    ).update({"$set": {"status": PENDING, "reviewed_by": None, "reviewed_at": None, "review_notes": None}})


async def approve(
    actor_id: PydanticObjectId,
    request_id: PydanticObjectId,
    notes: str | None = None,
) -> dict[str, Any]:
    """Apply the stored delta and close the request; both happen or neither does."""
    await authorization.require_super_admin(actor_id)
    async with transaction() as session:
        request = await _claim(request_id, APPROVED, actor_id, notes, session)
        try:
            result, record = await credits_service.apply_delta(
                request.user_id,
                request.delta,
                f"{request.reason} (Approved by super admin)",
                actor_id,
                request.credit_type,
                session,
                extra_details={"request_id": str(request_id), "notes": notes},
            )
        except Exception:
            if session is None:
                await _release(request_id, actor_id)
            raise
    log.info(
        "credit_request_approved",
        request_id=str(request_id),
        user_id=str(request.user_id),
        delta=request.delta,
        new=result["new_credits"],
    )
    await announce(record)
    return {
        "success": True,
        "request_id": str(request_id),
        "status": APPROVED,
        "old_credits": result["old_credits"],
        "new_credits": result["new_credits"],
        "credit_type": request.credit_type,
    }


async def reject(
    actor_id: PydanticObjectId,
    request_id: PydanticObjectId,
    notes: str | None = None,
) -> dict[str, Any]:
    """Close the request without touching balances; the decision is still logged."""
    await authorization.require_super_admin(actor_id)
    async with transaction() as session:
        request = await _claim(request_id, REJECTED, actor_id, notes, session)
        record = await log_transaction(
            request.user_id,
            CREDIT_REQUEST_REJECTED,
            {
                "request_id": str(request_id),
                "delta": request.delta,
                "reason": request.reason,
                "notes": notes,
                "credit_type": request.credit_type,
            },
            performed_by=actor_id,
            credit_type=request.credit_type,
            session=session,
        )
    log.info("credit_request_rejected", request_id=str(request_id), user_id=str(request.user_id))
    await announce(record)
    return {"success": True, "request_id": str(request_id), "status": REJECTED}


async def list_requests(actor_id: PydanticObjectId, status: str | None = None) -> list[PendingCreditRequest]:
    """Super admin queue: pending first, then newest first."""
    await authorization.require_super_admin(actor_id)
    query: dict[str, Any] = {}
    if status:
        query["status"] = status
    items = await PendingCreditRequest.find(query).sort(-PendingCreditRequest.requested_at).to_list()
    # stable: keeps newest-first inside each group
    return sorted(items, key=lambda r: r.status != PENDING)


def request_to_dict(request: PendingCreditRequest, emails: dict[PydanticObjectId, str] | None = None) -> dict[str, Any]:
    emails = emails or {}
    return {
        "id": str(request.id),
        "user_id": str(request.user_id),
        "user_email": emails.get(request.user_id),
        "delta": request.delta,
        "reason": request.reason,
        "credit_type": request.credit_type,
        "status": request.status,
        "requested_by": str(request.requested_by),
        "requested_by_email": emails.get(request.requested_by),
        "requested_at": request.requested_at.isoformat(),
        "reviewed_by": str(request.reviewed_by) if request.reviewed_by else None,
        "reviewed_by_email": emails.get(request.reviewed_by) if request.reviewed_by else None,
        "reviewed_at": request.reviewed_at.isoformat() if request.reviewed_at else None,
        "review_notes": request.review_notes,
    }
