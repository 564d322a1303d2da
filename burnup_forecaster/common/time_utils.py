from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Iterator

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_iso8601(dt_str: str) -> datetime:
    # Jira uses e.g. 2023-01-01T08:00:00.000-0800, other tools 2024-01-01T00:00:00Z
    s = dt_str.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    elif "T" in s:
        s = _COMPACT_OFFSET.sub(r"\1:\2", s)
    return ensure_aware(datetime.fromisoformat(s))


def ensure_aware(dt: datetime) -> datetime:
    """Read naive datetimes as UTC."""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in [start, end]."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)
