from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field

RequestStatus = Literal["pending", "approved", "rejected"]

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


class PendingCreditRequest(Document):
    """Admin-submitted balance change awaiting a super admin decision.

    Leaves ``pending`` exactly once, to ``approved`` or ``rejected``.
    """

    user_id: PydanticObjectId
    delta: int
    reason: str
    credit_type: str = "listing"
    status: RequestStatus = PENDING
    requested_by: PydanticObjectId
    requested_at: datetime = Field(default_factory=datetime.utcnow)
    reviewed_by: PydanticObjectId | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None

    class Settings:
        name = "pending_credits"
        indexes = [
            [("status", 1), ("requested_at", -1)],
            [("requested_by", 1)],
        ]
