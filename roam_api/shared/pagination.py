"""Page/limit helpers shared by the list endpoints."""

import math
from datetime import date
from typing import Optional

from fastapi import HTTPException


def clamp_limit(limit: int, default: int = 50, maximum: int = 100) -> int:
    """Clamp a requested page size into [1, maximum], using default for junk values."""
    if not limit or limit < 1:
        return default if default <= maximum else maximum
    return min(limit, maximum)


def page_offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


def page_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def offset_meta(offset: int, limit: int, total: int, returned: int) -> dict:
    return {
        "limit": limit,
        "offset": offset,
        "total": total,
        "has_more": offset + returned < total,
    }


def parse_date_param(value: Optional[str], name: str) -> Optional[date]:
    """YYYY-MM-DD query parameter, 400 when malformed."""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}. Expected YYYY-MM-DD")
