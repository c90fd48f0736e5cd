from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.core.ids import parse_id
from app.deps import get_current_profile
from app.models.profile import Profile
from app.models.property import Furnished, ListingType, PropertyStatus, PropertyType
from app.services import properties as property_service

router = APIRouter()


class PropertyCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str
    property_type: PropertyType
    listing_type: ListingType = "sale"
    price: float = Field(ge=0)
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: int = Field(default=0, ge=0)
    sqft: int = Field(ge=0)
    address: str
    city: str
    state: str
    country: str = "Malaysia"
    amenities: list[str] = Field(default_factory=list)
    furnished: Furnished | None = None
    status: PropertyStatus = "active"


class PropertyStatusUpdate(BaseModel):
    status: PropertyStatus


@router.get("")
async def list_properties(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Public catalogue of active listings, featured first."""
    props = await property_service.list_active(limit=limit, offset=offset)
    return {"properties": [property_service.property_to_dict(p) for p in props], "limit": limit, "offset": offset}


@router.get("/mine")
async def my_properties(profile: Profile = Depends(get_current_profile)):
    props = await property_service.list_for_agent(profile.id)
    return {"properties": [property_service.property_to_dict(p) for p in props]}


@router.post("")
async def create_property(body: PropertyCreate, profile: Profile = Depends(get_current_profile)):
    """Post a listing; agents spend listing credits."""
    return await property_service.create_property(profile, body.model_dump())


@router.post("/{property_id}/boost")
async def boost_property(property_id: str, profile: Profile = Depends(get_current_profile)):
    return await property_service.boost_property(profile, parse_id(property_id, "property id"))


@router.patch("/{property_id}/status")
async def update_property_status(
    property_id: str,
    body: PropertyStatusUpdate,
    profile: Profile = Depends(get_current_profile),
):
    prop = await property_service.set_property_status(profile, parse_id(property_id, "property id"), body.status)
    return property_service.property_to_dict(prop)
