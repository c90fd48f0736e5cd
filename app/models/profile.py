from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field

Role = Literal["user", "admin", "super_admin"]
ProfileStatus = Literal["pending", "approved", "rejected", "suspended"]
UserType = Literal["agent", "consumer"]
CreditType = Literal["listing", "boosting"]

ROLES = ("user", "admin", "super_admin")
ADMIN_ROLES = ("admin", "super_admin")
STATUSES = ("pending", "approved", "rejected", "suspended")
CREDIT_TYPES = ("listing", "boosting")

# Columns only the ledger / role / status workflows may write
BALANCE_FIELDS = ("listing_credits", "boosting_credits")


def balance_field(credit_type: str) -> str:
    if credit_type not in CREDIT_TYPES:
        raise ValueError(f"Unknown credit type: {credit_type}")
    return f"{credit_type}_credits"


class Profile(Document):
    google_sub: str | None = None
    email: str
    full_name: str = ""
    role: Role = "user"
    user_type: UserType | None = None
    status: ProfileStatus = "approved"
    listing_credits: int = Field(default=0, ge=0)
    boosting_credits: int = Field(default=0, ge=0)

    phone: str | None = None
    country: str | None = None
    company: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    preferred_contact_method: Literal["email", "phone", "whatsapp"] | None = None
    # Agent registration
    ren_number: str | None = None
    agency_name: str | None = None
    agency_license: str | None = None
    years_experience: int | None = None

    approved_by: PydanticObjectId | None = None
    approved_at: datetime | None = None
    session_version: int = 0
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "profiles"
        indexes = [
            [("google_sub", 1)],
            [("email", 1)],
            [("role", 1)],
        ]

    def balance(self, credit_type: str) -> int:
        return getattr(self, balance_field(credit_type))
