"""Small request-parsing helpers shared by the route modules."""
from __future__ import annotations

import re
from datetime import date, datetime, timezone

from flask import request

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_PAGE_SIZE = 50


def is_valid_email(value: object) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def clean_str(value: object) -> str | None:
    """Strip strings and collapse blanks to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_date(value: object) -> date:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) into a date.

    Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("date value is required")
    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_datetime(text).date()


def parse_datetime(value: object) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError("datetime value is required")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def get_pagination(default_limit: int = 20) -> tuple[int, int]:
    """Read ``page``/``limit`` query args; raises ValueError on junk."""
    page = max(1, int(request.args.get("page", 1)))
    limit = min(MAX_PAGE_SIZE, max(1, int(request.args.get("limit", default_limit))))
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def get_bool_arg(name: str) -> bool:
    return request.args.get(name, "false").strip().lower() == "true"


def get_list_arg(name: str) -> list[str]:
    raw = request.args.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]
