import pytest
import pytest_asyncio
from beanie import PydanticObjectId

from app.models.profile import Profile
from app.models.property import Property
from app.models.transaction_record import TransactionRecord
from app.services import credits as credits_service
from app.services import properties

LISTING = {
    "title": "3BR condo near KLCC",
    "description": "Corner unit, city view",
    "property_type": "condo",
    "listing_type": "rent",
    "price": 4500,
    "bedrooms": 3,
    "bathrooms": 2,
    "sqft": 1200,
    "address": "Jalan Ampang",
    "city": "Kuala Lumpur",
    "state": "Wilayah Persekutuan",
}


@pytest_asyncio.fixture
async def agent(make_profile):
    return await make_profile(
        email="agent@example.com",
        user_type="agent",
        ren_number="REN 01234",
        listing_credits=2,
        boosting_credits=1,
    )


async def test_agent_posts_and_pays(client, agent, auth_headers):
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(agent))
    assert r.status_code == 200
    body = r.json()
    assert body["credits_deducted"] == 1
    assert body["listing_credits"] == 1
    assert body["property"]["agent_id"] == str(agent.id)
    assert (await Profile.get(agent.id)).listing_credits == 1

    [record] = await TransactionRecord.find(TransactionRecord.user_id == agent.id).to_list()
    assert record.action_type == "property_posted"
    assert record.details["property_id"] == body["property"]["id"]
    assert record.details["old_credits"] == 2
    assert record.details["new_credits"] == 1


async def test_posting_without_credits_creates_nothing(client, make_profile, auth_headers):
    broke = await make_profile(user_type="agent", ren_number="REN 9", listing_credits=0)
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(broke))
    assert r.status_code == 400
    assert r.json()["code"] == "INSUFFICIENT_CREDITS"
    assert await Property.find_all().to_list() == []
    assert await TransactionRecord.find_all().to_list() == []


async def test_consumer_cannot_post(client, user, auth_headers):
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(user))
    assert r.status_code == 403


async def test_unapproved_agent_cannot_post(client, make_profile, auth_headers):
    pending = await make_profile(user_type="agent", ren_number="REN 7", listing_credits=5, status="pending")
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(pending))
    assert r.status_code == 403
    assert (await Profile.get(pending.id)).listing_credits == 5


async def test_admin_posts_free(client, admin, auth_headers):
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["credits_deducted"] == 0
    [record] = await TransactionRecord.find_all().to_list()
    assert record.details["credits_deducted"] == 0


async def test_boost(client, agent, auth_headers):
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(agent))
    prop_id = r.json()["property"]["id"]

    r = await client.post(f"/v1/properties/{prop_id}/boost", headers=auth_headers(agent))
    assert r.status_code == 200
    assert r.json()["boosting_credits"] == 0

    stored = await Property.get(prop_id)
    assert stored.is_featured is True
    assert stored.boost_count == 1
    assert stored.featured_until is not None

    r = await client.post(f"/v1/properties/{prop_id}/boost", headers=auth_headers(agent))
    assert r.status_code == 400
    assert (await Property.get(prop_id)).boost_count == 1


async def test_boost_requires_owner(client, agent, make_profile, auth_headers):
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(agent))
    prop_id = r.json()["property"]["id"]
    rival = await make_profile(user_type="agent", ren_number="REN 2", boosting_credits=3)
    r = await client.post(f"/v1/properties/{prop_id}/boost", headers=auth_headers(rival))
    assert r.status_code == 403
    assert (await Profile.get(rival.id)).boosting_credits == 3


async def test_boost_unknown_property(client, agent, auth_headers):
    r = await client.post("/v1/properties/64b7f0f0f0f0f0f0f0f0f0f0/boost", headers=auth_headers(agent))
    assert r.status_code == 404


async def test_public_list_shows_active_only(client, agent, auth_headers):
    await client.post("/v1/properties", json=LISTING, headers=auth_headers(agent))
    r = await client.post("/v1/properties", json={**LISTING, "title": "Draft", "status": "draft"}, headers=auth_headers(agent))
    assert r.status_code == 200

    r = await client.get("/v1/properties")
    assert r.status_code == 200
    assert [p["title"] for p in r.json()["properties"]] == ["3BR condo near KLCC"]

    r = await client.get("/v1/properties/mine", headers=auth_headers(agent))
    assert len(r.json()["properties"]) == 2


async def test_status_update(client, agent, user, auth_headers):
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(agent))
    prop_id = r.json()["property"]["id"]
    r = await client.patch(f"/v1/properties/{prop_id}/status", json={"status": "rented"}, headers=auth_headers(agent))
    assert r.status_code == 200
    assert r.json()["status"] == "rented"

    r = await client.patch(f"/v1/properties/{prop_id}/status", json={"status": "active"}, headers=auth_headers(user))
    assert r.status_code == 403


async def _refuse(*args, **kwargs):
    raise RuntimeError("insert failed")


async def test_failed_posting_record_refunds_and_drops_listing(agent, monkeypatch):
    monkeypatch.setattr(credits_service, "log_transaction", _refuse)
    with pytest.raises(RuntimeError):
        await properties.create_property(agent, dict(LISTING))
    assert (await Profile.get(agent.id)).listing_credits == 2
    assert await Property.find_all().to_list() == []
    assert await TransactionRecord.find_all().to_list() == []


async def test_failed_boost_record_leaves_listing_unfeatured(client, agent, auth_headers, monkeypatch):
    r = await client.post("/v1/properties", json=LISTING, headers=auth_headers(agent))
    property_id = PydanticObjectId(r.json()["property"]["id"])

    monkeypatch.setattr(credits_service, "log_transaction", _refuse)
    with pytest.raises(RuntimeError):
        await properties.boost_property(agent, property_id)
    prop = await Property.get(property_id)
    assert prop.is_featured is False
    assert prop.boost_count == 0
    assert (await Profile.get(agent.id)).boosting_credits == 1
