"""
Shared query helpers: identifier parsing, pagination, text and tag matching.

Used by both the job listing and application services so the two stores
agree on filter semantics.
"""
import json
import math
import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import Select, Text, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.errors import ValidationError


MAX_PAGE_SIZE = 100


def parse_id(value: Any, label: str = "id") -> uuid.UUID:
    """Parse an identifier, raising ValidationError when it is not a UUID."""
    if isinstance(value, uuid.UUID):
        return value
    if not value or not str(value).strip():
        raise ValidationError(f"{label} is required")
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        raise ValidationError(f"invalid {label}: {value}")


def validate_pagination(page: int, limit: int, allow_unlimited: bool = False) -> None:
    """
    Check page/limit bounds.

    ``limit=0`` is accepted only when ``allow_unlimited`` is set and means
    "every match on a single page".
    """
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit == 0 and allow_unlimited:
        return
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")


def page_count(total: int, limit: int) -> int:
    if limit == 0:
        return 1 if total else 0
    return math.ceil(total / limit)


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int,
    limit: int,
) -> tuple[list, int, int]:
    """
    Run ``query`` for one page.

    Returns (items, total, pages). The total is counted over the unpaged
    query so it reflects every match.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()

    if limit:
        query = query.offset((page - 1) * limit).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total, page_count(total, limit)


def validate_date_range(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required")
    if start > end:
        raise ValidationError("start_date must be before end_date")


# ============================================================
# TEXT MATCHING
# ============================================================

def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input is matched literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_ci(column, term: str):
    """Case-insensitive substring match."""
    return column.ilike(f"%{escape_like(term)}%", escape="\\")


def json_text_contains_ci(column, term: str):
    """Case-insensitive substring match against the serialized JSON of a column."""
    return cast(column, Text).ilike(f"%{escape_like(term)}%", escape="\\")


def json_list_contains_any(column, values: Sequence[str]):
    """
    True when a JSON string list holds any of ``values``.

    Matches the quoted element in the serialized list, which behaves the
    same on JSONB and on the TEXT storage used by SQLite.
    """
    clauses = [
        cast(column, Text).like(f"%{escape_like(json.dumps(value, ensure_ascii=False))}%", escape="\\")
        for value in values
    ]
    return or_(*clauses)


def normalize_tags(tags: Sequence[str]) -> list[str]:
    """Lowercase, strip and dedupe tags, keeping first-seen order."""
    seen = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen
