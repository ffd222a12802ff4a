from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from generic_repository.core.errors import InvalidFilterError

_TRUE_WORDS = {"1", "true", "yes", "y"}
_FALSE_WORDS = {"0", "false", "no", "n"}

# bool before int: a bool field must not fall through to the int coercer.
SCALAR_TYPES = (uuid.UUID, bool, int, float, Decimal, datetime, date)


def coerce_bool(field: str, text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise InvalidFilterError(field, "expected a boolean")


def coerce_number(field: str, text: str, python_type):
    normalized = text.strip().replace(",", ".")
    if not normalized:
        raise InvalidFilterError(field, "expected a number")
    try:
        if python_type is Decimal:
            return Decimal(normalized)
        return python_type(normalized)
    except (ValueError, TypeError, InvalidOperation):
        raise InvalidFilterError(field, "expected a number")


def coerce_date(field: str, text: str) -> date:
    text = text.strip()
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidFilterError(field, "expected an ISO date")


def coerce_datetime(field: str, text: str) -> datetime:
    text = text.strip()
    try:
        if is_date_only_literal(text):
            # Date-only value on a timestamp field -> start of that day.
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        else:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidFilterError(field, "expected an ISO datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_date_only_literal(text: str) -> bool:
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def day_bounds(field: str, text: str) -> tuple[datetime, datetime]:
    start = coerce_datetime(field, text)
    return start, start + timedelta(days=1)


def coerce_to_type(field: str, text: str, python_type) -> Any:
    """Coerce raw criterion text to ``python_type``; unknown types keep the text."""
    if python_type is uuid.UUID:
        try:
            return uuid.UUID(text.strip())
        except ValueError:
            raise InvalidFilterError(field, "expected a UUID")
    if python_type is bool:
        return coerce_bool(field, text)
    if python_type in {int, float, Decimal}:
        return coerce_number(field, text, python_type)
    if python_type is datetime:
        return coerce_datetime(field, text)
    if python_type is date:
        return coerce_date(field, text)
    return text
