"""Pagination helpers."""

from typing import Any

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def paginate(limit: Any = DEFAULT_LIMIT, offset: Any = 0, max_limit: int = MAX_LIMIT) -> tuple[int, int]:
    """Clamp limit/offset; return (limit, offset). Non-numeric input falls back to defaults."""
    try:
        limit = int(limit) if limit is not None else DEFAULT_LIMIT
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT
    try:
        offset = int(offset) if offset is not None else 0
    except (TypeError, ValueError):
        offset = 0
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset
