"""Privileged endpoint: one route, multiplexed by HTTP method and a JSON ``action`` field.

The caller's admin capability is checked here before dispatch; each workflow then
re-checks the exact role it needs (super admin for approvals, promotions, bulk).
"""

import json
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, ValidationError

from app.core.exceptions import AppError, BadRequestError, ForbiddenError, jsonable_errors
from app.core.ids import parse_id
from app.core.logging import get_logger
from app.deps import get_current_profile
from app.models.profile import CreditType, Profile, ProfileStatus, Role
from app.services import approvals as approvals_service
from app.services import authorization
from app.services import credits as credits_service
from app.services import profiles as profile_service
from app.services import roles as roles_service

router = APIRouter()
log = get_logger(__name__)


class ApplyCredits(BaseModel):
    p_user_id: str
    p_delta: int
    p_reason: str | None = None
    p_credit_type: CreditType = "listing"


class RequestCredits(ApplyCredits):
    p_reason: str = Field(min_length=1)


class ReviewRequest(BaseModel):
    p_request_id: str
    p_review_notes: str | None = None


class Promote(BaseModel):
    p_user_id: str
    p_new_role: Role


class BulkCredits(BaseModel):
    user_ids: list[str] = Field(min_length=1)
    p_delta: int
    p_reason: str | None = None
    p_credit_type: CreditType = "listing"


class ListTransactions(BaseModel):
    p_user_id: str | None = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class SetStatus(BaseModel):
    p_user_id: str
    p_status: ProfileStatus


class NoArgs(BaseModel):
    pass


async def _list_profiles(actor: Profile, _: NoArgs) -> list[dict[str, Any]]:
    profiles = await profile_service.list_profiles(actor.id)
    return [profile_service.profile_to_dict(p) for p in profiles]


async def _apply_credits(actor: Profile, body: ApplyCredits) -> dict[str, Any]:
    await authorization.require_super_admin(actor.id)
    return await credits_service.adjust_balance(
        parse_id(body.p_user_id, "p_user_id"), body.p_delta, body.p_reason, actor.id, body.p_credit_type
    )


async def _request_credits(actor: Profile, body: RequestCredits) -> dict[str, Any]:
    request = await approvals_service.request_change(
        actor.id, parse_id(body.p_user_id, "p_user_id"), body.p_delta, body.p_reason, body.p_credit_type
    )
    return {"success": True, "request_id": str(request.id), "status": request.status}


async def _approve(actor: Profile, body: ReviewRequest) -> dict[str, Any]:
    return await approvals_service.approve(actor.id, parse_id(body.p_request_id, "p_request_id"), body.p_review_notes)


async def _reject(actor: Profile, body: ReviewRequest) -> dict[str, Any]:
    return await approvals_service.reject(actor.id, parse_id(body.p_request_id, "p_request_id"), body.p_review_notes)


async def _promote(actor: Profile, body: Promote) -> dict[str, Any]:
    return await roles_service.set_role(actor.id, parse_id(body.p_user_id, "p_user_id"), body.p_new_role)


async def _bulk_credits(actor: Profile, body: BulkCredits) -> dict[str, Any]:
    """Each id is adjusted on its own; one failure never blocks the others."""
    await authorization.require_super_admin(actor.id)
    succeeded: list[dict[str, Any]] = []
    failed: list[dict[str, Any]] = []
    for raw_id in body.user_ids:
        try:
            result = await credits_service.adjust_balance(
                parse_id(raw_id, "user id"), body.p_delta, body.p_reason, actor.id, body.p_credit_type
            )
            succeeded.append(
                {"user_id": raw_id, "old_credits": result["old_credits"], "new_credits": result["new_credits"]}
            )
        except AppError as e:
            failed.append({"user_id": raw_id, "error": e.message})
        except Exception:
            log.exception("bulk_credit_failed", user_id=raw_id)
            failed.append({"user_id": raw_id, "error": "Internal error"})
    log.info("bulk_credits", total=len(body.user_ids), succeeded=len(succeeded), failed=len(failed))
    return {
        "success": True,
        "summary": {"total": len(body.user_ids), "succeeded": len(succeeded), "failed": len(failed)},
        "results": {"success": succeeded, "failed": failed},
    }


async def _list_pending(actor: Profile, _: NoArgs) -> dict[str, Any]:
    requests = await approvals_service.list_requests(actor.id)
    emails = await profile_service.emails_by_id(
        [r.user_id for r in requests] + [r.requested_by for r in requests] + [r.reviewed_by for r in requests]
    )
    return {"requests": [approvals_service.request_to_dict(r, emails) for r in requests]}


async def _get_transactions(actor: Profile, body: ListTransactions) -> dict[str, Any]:
    await authorization.require_super_admin(actor.id)
    user_id = parse_id(body.p_user_id, "p_user_id") if body.p_user_id else None
    records = await credits_service.list_transactions(actor.id, limit=body.limit, offset=body.offset, user_id=user_id)
    emails = await profile_service.emails_by_id([r.user_id for r in records] + [r.performed_by for r in records])
    return {
        "transactions": [credits_service.transaction_to_dict(r, emails) for r in records],
        "limit": body.limit,
        "offset": body.offset,
    }


async def _set_status(actor: Profile, body: SetStatus) -> dict[str, Any]:
    return await profile_service.set_status(actor.id, parse_id(body.p_user_id, "p_user_id"), body.p_status)


Handler = Callable[[Profile, Any], Awaitable[Any]]

ACTIONS: dict[str, tuple[type[BaseModel], Handler]] = {
    "list-profiles": (NoArgs, _list_profiles),
    "apply-credits": (ApplyCredits, _apply_credits),
    "request-credits": (RequestCredits, _request_credits),
    "approve": (ReviewRequest, _approve),
    "reject": (ReviewRequest, _reject),
    "promote": (Promote, _promote),
    "bulk-credits": (BulkCredits, _bulk_credits),
    "list-pending": (NoArgs, _list_pending),
    "get-transactions": (ListTransactions, _get_transactions),
    "set-status": (SetStatus, _set_status),
}


async def admin_profile(profile: Profile = Depends(get_current_profile)) -> Profile:
    """Endpoint-level capability gate."""
    if not await authorization.is_admin(profile.id):
        raise ForbiddenError("Forbidden")
    return profile


@router.get("/profiles")
async def admin_list_profiles(profile: Profile = Depends(admin_profile)):
    """Admin: every profile, newest first."""
    return await _list_profiles(profile, NoArgs())


@router.post("/profiles")
async def admin_action(request: Request, profile: Profile = Depends(admin_profile)):
    """Admin: run one privileged action, selected by the body's ``action`` field."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequestError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")
    action = body.pop("action", None)
    if action not in ACTIONS:
        raise BadRequestError("Unknown action", details={"actions": sorted(ACTIONS)})
    model, handler = ACTIONS[action]
    try:
        params = model.model_validate(body)
    except ValidationError as e:
        raise BadRequestError("Invalid request", details={"errors": jsonable_errors(e.errors())}) from None
    log.info("admin_action", action=action)
    return await handler(profile, params)
