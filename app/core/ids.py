from typing import Any

from beanie import PydanticObjectId
from bson.errors import InvalidId

from app.core.exceptions import BadRequestError


def parse_id(value: Any, label: str = "id") -> PydanticObjectId:
    """Parse a client-supplied ObjectId string; malformed input is a 400."""
    if isinstance(value, PydanticObjectId):
        return value
    if not isinstance(value, str) or not value.strip():
        raise BadRequestError(f"Missing {label}")
    try:
        return PydanticObjectId(value.strip())
    except (InvalidId, TypeError):
        raise BadRequestError(f"Invalid {label}") from None
