"""ORM row to JSON-ready dict conversion"""

from datetime import date, datetime, time
from typing import Any, Iterable, Optional


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def row_to_dict(row: Any, fields: Optional[Iterable[str]] = None, exclude: Iterable[str] = ()) -> Optional[dict]:
    """Column values of a mapped instance; ``fields`` limits and orders the keys."""
    if row is None:
        return None
    names = list(fields) if fields is not None else [column.key for column in row.__table__.columns]
    skipped = set(exclude)
    result = {}
    for name in names:
        if name in skipped:
            continue
        # metadata_ maps the reserved "metadata" column name
        attribute = "metadata_" if name == "metadata" else name
        result[name] = _json_value(getattr(row, attribute, None))
    return result


def full_name(first_name: Optional[str], last_name: Optional[str], default: str = "") -> str:
    name = f"{first_name or ''} {last_name or ''}".strip()
    return name or default
