"""Request/approve workflow: pending leaves exactly once, balance and status move together."""

import pytest
from beanie import PydanticObjectId

from app.core.exceptions import (
    BadRequestError,
    DomainError,
    ForbiddenError,
    RequestAlreadyProcessedError,
    RequestNotFoundError,
)
from app.models.pending_credit_request import PendingCreditRequest
from app.models.profile import Profile
from app.models.transaction_record import TransactionRecord
from app.services import approvals
from app.services import credits as credits_service


async def test_request_change_stages_without_balance_effect(admin, user):
    request = await approvals.request_change(admin.id, user.id, 20, "Campaign reward")
    assert request.status == "pending"
    assert request.requested_by == admin.id
    assert (await Profile.get(user.id)).listing_credits == 10
    assert await TransactionRecord.find_all().to_list() == []


async def test_request_change_requires_admin(user, make_profile):
    other = await make_profile()
    with pytest.raises(ForbiddenError):
        await approvals.request_change(user.id, other.id, 5, "please")


async def test_request_change_requires_reason(admin, user):
    with pytest.raises(BadRequestError, match="Reason is required"):
        await approvals.request_change(admin.id, user.id, 5, "   ")


async def test_approve_applies_delta_and_closes_request(admin, super_admin, user):
    request = await approvals.request_change(admin.id, user.id, 20, "Campaign reward")
    result = await approvals.approve(super_admin.id, request.id, "ok")

    assert result["status"] == "approved"
    assert result["old_credits"] == 10
    assert result["new_credits"] == 30
    assert (await Profile.get(user.id)).listing_credits == 30

    stored = await PendingCreditRequest.get(request.id)
    assert stored.status == "approved"
    assert stored.reviewed_by == super_admin.id
    assert stored.reviewed_at is not None
    assert stored.review_notes == "ok"

    [record] = await TransactionRecord.find(TransactionRecord.user_id == user.id).to_list()
    assert record.action_type == "credit_add"
    assert record.performed_by == super_admin.id
    assert record.details["reason"] == "Campaign reward (Approved by super admin)"
    assert record.details["request_id"] == str(request.id)


async def test_approve_twice_fails(admin, super_admin, user):
    request = await approvals.request_change(admin.id, user.id, 5, "bonus")
    await approvals.approve(super_admin.id, request.id)
    with pytest.raises(RequestAlreadyProcessedError, match="already approved"):
        await approvals.approve(super_admin.id, request.id)
    assert (await Profile.get(user.id)).listing_credits == 15


async def test_approve_after_reject_fails(admin, super_admin, user):
    request = await approvals.request_change(admin.id, user.id, 5, "bonus")
    await approvals.reject(super_admin.id, request.id, "no")
    with pytest.raises(RequestAlreadyProcessedError, match="already rejected"):
        await approvals.approve(super_admin.id, request.id)
    with pytest.raises(RequestAlreadyProcessedError):
        await approvals.reject(super_admin.id, request.id)
    assert (await Profile.get(user.id)).listing_credits == 10


async def test_approve_requires_super_admin(admin, user):
    request = await approvals.request_change(admin.id, user.id, 5, "bonus")
    with pytest.raises(ForbiddenError):
        await approvals.approve(admin.id, request.id)
    assert (await PendingCreditRequest.get(request.id)).status == "pending"


async def test_failed_ledger_step_leaves_request_pending(admin, super_admin, user):
    request = await approvals.request_change(admin.id, user.id, 5, "bonus")
    await user.delete()

    with pytest.raises(DomainError, match="User not found"):
        await approvals.approve(super_admin.id, request.id)

    stored = await PendingCreditRequest.get(request.id)
    assert stored.status == "pending"
    assert stored.reviewed_by is None
    assert await TransactionRecord.find_all().to_list() == []


async def test_failed_record_insert_leaves_no_trace(admin, super_admin, user, monkeypatch):
    request = await approvals.request_change(admin.id, user.id, 5, "Campaign reward")

    async def refuse(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(credits_service, "log_transaction", refuse)
    with pytest.raises(RuntimeError):
        await approvals.approve(super_admin.id, request.id)

    assert (await Profile.get(user.id)).listing_credits == 10
    assert await TransactionRecord.find_all().to_list() == []
    assert (await PendingCreditRequest.get(request.id)).status == "pending"

    monkeypatch.undo()
    result = await approvals.approve(super_admin.id, request.id)
    assert result["new_credits"] == 15


async def test_unknown_request(super_admin):
    with pytest.raises(RequestNotFoundError) as exc:
        await approvals.approve(super_admin.id, PydanticObjectId())
    assert exc.value.code == "REQUEST_NOT_FOUND"


async def test_reject_logs_without_balance_change(admin, super_admin, user):
    request = await approvals.request_change(admin.id, user.id, -5, "chargeback")
    result = await approvals.reject(super_admin.id, request.id, "not justified")
    assert result["status"] == "rejected"
    assert (await Profile.get(user.id)).listing_credits == 10

    [record] = await TransactionRecord.find_all().to_list()
    assert record.action_type == "credit_request_rejected"
    assert record.details["notes"] == "not justified"
    assert record.details["delta"] == -5


async def test_list_requests_puts_pending_first(admin, super_admin, user):
    first = await approvals.request_change(admin.id, user.id, 1, "one")
    await approvals.request_change(admin.id, user.id, 2, "two")
    await approvals.reject(super_admin.id, first.id)

    items = await approvals.list_requests(super_admin.id)
    assert [r.status for r in items] == ["pending", "rejected"]
    assert [r.status for r in await approvals.list_requests(super_admin.id, status="rejected")] == ["rejected"]

    with pytest.raises(ForbiddenError):
        await approvals.list_requests(admin.id)
