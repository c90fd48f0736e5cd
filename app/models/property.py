from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field

PropertyType = Literal["house", "apartment", "condo", "villa", "studio", "shophouse"]
ListingType = Literal["sale", "rent"]
PropertyStatus = Literal["draft", "active", "sold", "rented", "inactive"]
Furnished = Literal["fully_furnished", "partially_furnished", "unfurnished"]


class Property(Document):
    title: str
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
    agent_id: PydanticObjectId
    status: PropertyStatus = "draft"
    is_featured: bool = False
    featured_until: datetime | None = None
    boost_count: int = 0
    views_count: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "properties"
        indexes = [
            [("agent_id", 1), ("created_at", -1)],
            [("status", 1), ("is_featured", -1), ("created_at", -1)],
            [("city", 1)],
        ]
