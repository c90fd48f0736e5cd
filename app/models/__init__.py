from app.models.profile import Profile
from app.models.transaction_record import TransactionRecord
from app.models.pending_credit_request import PendingCreditRequest
from app.models.property import Property
from app.models.failed_job import FailedJob

__all__ = [
    "Profile",
    "TransactionRecord",
    "PendingCreditRequest",
    "Property",
    "FailedJob",
]
