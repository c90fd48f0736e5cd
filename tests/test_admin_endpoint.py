"""Privileged endpoint: auth, capability gate, action dispatch, bulk partial failure."""

from beanie import PydanticObjectId

from app.models.pending_credit_request import PendingCreditRequest
from app.models.profile import Profile

URL = "/v1/admin/profiles"


async def test_missing_token(client):
    r = await client.get(URL)
    assert r.status_code == 401
    assert r.json()["error"] == "Missing token"
    assert r.json()["success"] is False


async def test_invalid_token(client):
    r = await client.get(URL, headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid token"


async def test_stale_session_version_is_rejected(client, admin, auth_headers):
    headers = auth_headers(admin)
    await Profile.find_one({"_id": admin.id}).update({"$inc": {"session_version": 1}})
    r = await client.get(URL, headers=headers)
    assert r.status_code == 401


async def test_plain_user_is_forbidden(client, user, auth_headers):
    r = await client.get(URL, headers=auth_headers(user))
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden"
    r = await client.post(URL, json={"action": "list-pending"}, headers=auth_headers(user))
    assert r.status_code == 403


async def test_admin_lists_profiles(client, admin, user, auth_headers):
    r = await client.get(URL, headers=auth_headers(admin))
    assert r.status_code == 200
    emails = {p["email"] for p in r.json()}
    assert {"admin@example.com", "user@example.com"} <= emails


async def test_bad_requests(client, super_admin, auth_headers):
    headers = auth_headers(super_admin)
    r = await client.post(URL, content=b"{not json", headers={**headers, "Content-Type": "application/json"})
    assert r.status_code == 400

    r = await client.post(URL, json={"action": "drop-table"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Unknown action"

    r = await client.post(URL, json={"action": "apply-credits", "p_user_id": str(super_admin.id)}, headers=headers)
    assert r.status_code == 400
    assert r.json()["code"] == "BAD_REQUEST"

    r = await client.post(URL, json={"action": "apply-credits", "p_user_id": "nope", "p_delta": 1}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid p_user_id"


async def test_apply_credits(client, super_admin, user, auth_headers):
    r = await client.post(
        URL,
        json={"action": "apply-credits", "p_user_id": str(user.id), "p_delta": -15, "p_reason": "Refund reversal"},
        headers=auth_headers(super_admin),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["old_credits"] == 10
    assert body["new_credits"] == 0


async def test_apply_credits_requires_super_admin(client, admin, user, auth_headers):
    r = await client.post(
        URL,
        json={"action": "apply-credits", "p_user_id": str(user.id), "p_delta": 5},
        headers=auth_headers(admin),
    )
    assert r.status_code == 403
    assert (await Profile.get(user.id)).listing_credits == 10


async def test_request_then_approve(client, admin, super_admin, user, auth_headers):
    r = await client.post(
        URL,
        json={"action": "request-credits", "p_user_id": str(user.id), "p_delta": 7, "p_reason": "Referral"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    request_id = r.json()["request_id"]
    assert r.json()["status"] == "pending"

    r = await client.post(URL, json={"action": "list-pending"}, headers=auth_headers(super_admin))
    assert r.status_code == 200
    [item] = r.json()["requests"]
    assert item["id"] == request_id
    assert item["user_email"] == "user@example.com"
    assert item["requested_by_email"] == "admin@example.com"

    approve = {"action": "approve", "p_request_id": request_id, "p_review_notes": "fine"}
    r = await client.post(URL, json=approve, headers=auth_headers(super_admin))
    assert r.status_code == 200
    assert r.json()["new_credits"] == 17

    r = await client.post(URL, json=approve, headers=auth_headers(super_admin))
    assert r.status_code == 400
    assert r.json()["code"] == "REQUEST_ALREADY_PROCESSED"


async def test_request_credits_requires_reason(client, admin, user, auth_headers):
    r = await client.post(
        URL,
        json={"action": "request-credits", "p_user_id": str(user.id), "p_delta": 7},
        headers=auth_headers(admin),
    )
    assert r.status_code == 400
    assert await PendingCreditRequest.find_all().to_list() == []


async def test_admin_cannot_approve_or_promote(client, admin, user, auth_headers):
    r = await client.post(URL, json={"action": "approve", "p_request_id": str(PydanticObjectId())}, headers=auth_headers(admin))
    assert r.status_code == 403
    r = await client.post(
        URL,
        json={"action": "promote", "p_user_id": str(admin.id), "p_new_role": "super_admin"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 403
    assert (await Profile.get(admin.id)).role == "admin"


async def test_promote(client, super_admin, user, auth_headers):
    r = await client.post(
        URL,
        json={"action": "promote", "p_user_id": str(user.id), "p_new_role": "admin"},
        headers=auth_headers(super_admin),
    )
    assert r.status_code == 200
    assert r.json()["new_role"] == "admin"

    r = await client.post(
        URL,
        json={"action": "promote", "p_user_id": str(user.id), "p_new_role": "owner"},
        headers=auth_headers(super_admin),
    )
    assert r.status_code == 400


async def test_bulk_credits_reports_per_id(client, super_admin, user, make_profile, auth_headers):
    other = await make_profile(listing_credits=1)
    missing = str(PydanticObjectId())
    r = await client.post(
        URL,
        json={
            "action": "bulk-credits",
            "user_ids": [str(user.id), missing, "garbage", str(other.id)],
            "p_delta": 3,
            "p_reason": "Holiday promo",
        },
        headers=auth_headers(super_admin),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["summary"] == {"total": 4, "succeeded": 2, "failed": 2}
    assert {s["user_id"]: s["new_credits"] for s in body["results"]["success"]} == {
        str(user.id): 13,
        str(other.id): 4,
    }
    failed = {f["user_id"]: f["error"] for f in body["results"]["failed"]}
    assert failed == {missing: "User not found", "garbage": "Invalid user id"}


async def test_bulk_credits_requires_super_admin(client, admin, user, auth_headers):
    r = await client.post(
        URL,
        json={"action": "bulk-credits", "user_ids": [str(user.id)], "p_delta": 3},
        headers=auth_headers(admin),
    )
    assert r.status_code == 403


async def test_get_transactions(client, super_admin, user, auth_headers):
    headers = auth_headers(super_admin)
    await client.post(
        URL,
        json={"action": "apply-credits", "p_user_id": str(user.id), "p_delta": 2, "p_reason": "x"},
        headers=headers,
    )
    r = await client.post(URL, json={"action": "get-transactions", "limit": 10}, headers=headers)
    assert r.status_code == 200
    [tx] = r.json()["transactions"]
    assert tx["action_type"] == "credit_add"
    assert tx["user_email"] == "user@example.com"
    assert tx["performer_email"] == "root@example.com"


async def test_set_status(client, admin, make_profile, auth_headers):
    agent = await make_profile(user_type="agent", ren_number="REN 1", status="pending")
    r = await client.post(
        URL,
        json={"action": "set-status", "p_user_id": str(agent.id), "p_status": "approved"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    assert r.json()["new_status"] == "approved"
    stored = await Profile.get(agent.id)
    assert stored.status == "approved"
    assert stored.approved_by == admin.id
