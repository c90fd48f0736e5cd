"""Property listings. Posting spends listing credits, boosting spends boosting credits."""

from datetime import datetime, timedelta
from typing import Any

from beanie import PydanticObjectId

from app.core.audit import announce, log_transaction
from app.core.config import get_settings
from app.core.exceptions import BadRequestError, ForbiddenError, NotFoundError, ProfileNotFoundError
from app.core.logging import get_logger
from app.core.pagination import paginate
from app.db.init import transaction
from app.models.profile import Profile
from app.models.property import Property
from app.models.transaction_record import PROPERTY_BOOSTED, PROPERTY_POSTED
from app.services import authorization
from app.services import credits as credits_service

log = get_logger(__name__)

PROPERTY_STATUSES = ("draft", "active", "sold", "rented", "inactive")


async def create_property(actor: Profile, data: dict[str, Any]) -> dict[str, Any]:
    """
    Agents pay ``listing_credits_per_post`` listing credits; the debit, the listing and
    the property_posted record commit together. Admins post without a debit.
    """
    actor_is_admin = await authorization.is_admin(actor.id)
    if actor.user_type != "agent" and not actor_is_admin:
        raise ForbiddenError("Only agents can post properties")
    if actor.status != "approved" and not actor_is_admin:
        raise ForbiddenError("Your account is not approved for posting")

    prop = Property(**data, agent_id=actor.id)
    prop.id = PydanticObjectId()
    cost = 0 if actor_is_admin else get_settings().listing_credits_per_post
    listing = {"property_id": str(prop.id), "property_title": prop.title}

    async with transaction() as session:
        await prop.insert(session=session)
        try:
            if cost > 0:
                result, record = await credits_service.debit(
                    actor.id,
                    cost,
                    f"Posted property: {prop.title}",
                    "listing",
                    session,
                    action_type=PROPERTY_POSTED,
                    extra_details={**listing, "credits_deducted": cost},
                )
            else:
                result = {"old_credits": actor.listing_credits, "new_credits": actor.listing_credits}
                record = await log_transaction(
                    actor.id,
                    PROPERTY_POSTED,
                    {**listing, "credits_deducted": 0},
                    performed_by=actor.id,
                    credit_type="listing",
                    session=session,
                )
        except Exception:
            # debit reverts its own balance write
            if session is None:
                await prop.delete()
            raise

    log.info("property_posted", property_id=str(prop.id), agent_id=str(actor.id), credits_deducted=cost)
    await announce(record)
    return {
        "success": True,
        "property": property_to_dict(prop),
        "credits_deducted": cost,
        "listing_credits": result["new_credits"],
    }


async def _owned_property(actor: Profile, property_id: PydanticObjectId, allow_admin: bool = False) -> Property:
    prop = await Property.get(property_id)
    if prop is None:
        raise NotFoundError("Property not found")
    if prop.agent_id != actor.id and not (allow_admin and await authorization.is_admin(actor.id)):
        raise ForbiddenError("You can only manage your own properties")
    return prop


async def boost_property(actor: Profile, property_id: PydanticObjectId) -> dict[str, Any]:
    """Feature a listing for ``featured_days``; stacking boosts extends the window."""
    settings = get_settings()
    prop = await _owned_property(actor, property_id)
    cost = settings.boosting_credits_per_boost
    now = datetime.utcnow()
    start = prop.featured_until if prop.featured_until and prop.featured_until > now else now
    featured_until = start + timedelta(days=settings.featured_days)

    async with transaction() as session:
        await Property.find_one({"_id": prop.id}, session=session).update(
            {
                "$set": {"is_featured": True, "featured_until": featured_until, "updated_at": now},
                "$inc": {"boost_count": 1},
            },
            session=session,
        )
        try:
            result, record = await credits_service.debit(
                actor.id,
                cost,
                f"Boosted property: {prop.title}",
                "boosting",
                session,
                action_type=PROPERTY_BOOSTED,
                extra_details={
                    "property_id": str(prop.id),
                    "property_title": prop.title,
                    "featured_until": featured_until.isoformat(),
                },
            )
        except Exception:
            if session is None:
                await Property.find_one({"_id": prop.id}).update(
                    {
                        "$set": {"is_featured": prop.is_featured, "featured_until": prop.featured_until},
                        "$inc": {"boost_count": -1},
                    }
                )
            raise

    log.info("property_boosted", property_id=str(prop.id), featured_until=featured_until.isoformat())
    await announce(record)
    return {
        "success": True,
        "property_id": str(prop.id),
        "featured_until": featured_until.isoformat(),
        "boosting_credits": result["new_credits"],
    }


async def set_property_status(actor: Profile, property_id: PydanticObjectId, status: str) -> Property:
    if status not in PROPERTY_STATUSES:
        raise BadRequestError(f"Invalid status. Must be one of: {', '.join(PROPERTY_STATUSES)}")
    prop = await _owned_property(actor, property_id, allow_admin=True)
    await Property.find_one({"_id": prop.id}).update(
        {"$set": {"status": status, "updated_at": datetime.utcnow()}}
    )
    return await Property.get(prop.id)


async def list_active(limit: int = 50, offset: int = 0) -> list[Property]:
    """Public catalogue: featured first, then newest."""
    limit, offset = paginate(limit, offset)
    return (
        await Property.find(Property.status == "active")
        .sort(-Property.is_featured, -Property.featured_until, -Property.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )


async def list_for_agent(agent_id: PydanticObjectId) -> list[Property]:
    if not await Profile.get(agent_id):
        raise ProfileNotFoundError()
    return await Property.find(Property.agent_id == agent_id).sort(-Property.created_at).to_list()


def property_to_dict(prop: Property) -> dict[str, Any]:
    now = datetime.utcnow()
    return {
        "id": str(prop.id),
        "title": prop.title,
        "description": prop.description,
        "property_type": prop.property_type,
        "listing_type": prop.listing_type,
        "price": prop.price,
        "bedrooms": prop.bedrooms,
        "bathrooms": prop.bathrooms,
        "sqft": prop.sqft,
        "address": prop.address,
        "city": prop.city,
        "state": prop.state,
        "country": prop.country,
        "amenities": prop.amenities,
        "furnished": prop.furnished,
        "agent_id": str(prop.agent_id),
        "status": prop.status,
        "is_featured": prop.is_featured and (prop.featured_until is None or prop.featured_until > now),
        "featured_until": prop.featured_until.isoformat() if prop.featured_until else None,
        "boost_count": prop.boost_count,
        "created_at": prop.created_at.isoformat(),
    }
