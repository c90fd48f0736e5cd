from datetime import datetime
from typing import Any

from beanie import Document, PydanticObjectId
from pydantic import Field

from app.core.exceptions import ImmutableRecordError

# Action kinds written by the ledger and workflows
CREDIT_ADD = "credit_add"
CREDIT_DEDUCT = "credit_deduct"
CREDIT_USAGE = "credit_usage"
ROLE_CHANGE = "role_change"
STATUS_CHANGE = "status_change"
CREDIT_REQUEST_REJECTED = "credit_request_rejected"
PROPERTY_POSTED = "property_posted"
PROPERTY_BOOSTED = "property_boosted"


class TransactionRecord(Document):
    """Append-only audit entry. Inserted once, never saved, replaced or deleted."""

    user_id: PydanticObjectId
    action_type: str
    details: dict[str, Any] = Field(default_factory=dict)
    performed_by: PydanticObjectId | None = None  # None = system
    credit_type: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "transaction_history"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("performed_by", 1), ("created_at", -1)],
            [("created_at", -1)],
        ]

    async def save(self, *args, **kwargs):
        raise ImmutableRecordError()

    async def replace(self, *args, **kwargs):
        raise ImmutableRecordError()

    async def delete(self, *args, **kwargs):
        raise ImmutableRecordError()
