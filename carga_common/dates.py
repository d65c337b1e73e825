"""Date parsing and arithmetic shared by the CargaInteligente domain modules.

Collections are persisted as JSON, so every date travels as an ISO 8601
string. These helpers convert between the stored strings and ``date`` /
``datetime`` objects and provide the month arithmetic used by installment
schedules.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any, Optional


def parse_datetime(value: Any) -> Optional[datetime]:
    """Return ``value`` as a naive :class:`datetime` or ``None``.

    Accepts ``datetime`` and ``date`` instances as well as ISO strings,
    including the trailing ``Z`` produced by JavaScript clients. Timezone
    aware values are converted to naive UTC-less datetimes so comparisons
    inside the domain code never mix aware and naive objects.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def parse_date(value: Any) -> Optional[date]:
    """Return the calendar date portion of ``value`` or ``None``."""

    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def parse_br_date(value: str) -> Optional[date]:
    """Parse a ``dd/mm/yyyy`` string as used by rate validity columns."""

    try:
        return datetime.strptime(value.strip(), "%d/%m/%Y").date()
    except (AttributeError, ValueError):
        return None


def isoformat(value: Optional[date]) -> Optional[str]:
    """Serialise a ``date`` or ``datetime`` for JSON storage."""

    if value is None:
        return None
    return value.isoformat()


def format_br(value: Optional[date]) -> str:
    """Render ``value`` as ``dd/mm/yyyy``; empty string when missing."""

    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def add_months(value: date, months: int) -> date:
    """Shift ``value`` by ``months`` calendar months, clamping the day."""

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


__all__ = [
    "add_months",
    "format_br",
    "isoformat",
    "parse_br_date",
    "parse_date",
    "parse_datetime",
]
