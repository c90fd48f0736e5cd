"""Transaction history: the append-only audit trail of every ledger and role change."""

from typing import Any

from beanie import PydanticObjectId

from app.core.events import TRANSACTION_LOGGED, eventbus
from app.models.transaction_record import TransactionRecord


async def log_transaction(
    user_id: PydanticObjectId,
    action_type: str,
    details: dict[str, Any] | None = None,
    performed_by: PydanticObjectId | None = None,
    credit_type: str | None = None,
    session=None,
) -> TransactionRecord:
    """Insert a record inside the caller's atomic unit. Does not notify; see ``announce``."""
    record = TransactionRecord(
        user_id=user_id,
        action_type=action_type,
        details=details or {},
        performed_by=performed_by,
        credit_type=credit_type,
    )
    await record.insert(session=session)
    return record


async def announce(*records: TransactionRecord) -> None:
    """Publish committed records to the event bus (notifications)."""
    for record in records:
        await eventbus.publish(TRANSACTION_LOGGED, record)
