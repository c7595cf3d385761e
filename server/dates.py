from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Optional

from errors import ValidationError

_EXTRA_DATE_FORMATS = ('%Y/%m/%d', '%m/%d/%Y')


def _parse_date_text(text: str) -> Optional[date]:
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    value = text
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    try:
        # The calendar date is taken as written; offsets are not applied.
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    for fmt in _EXTRA_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(value: Any, field: str = 'date') -> Optional[str]:
    """Return ``YYYY-MM-DD`` for ``value``, or ``None`` when no date was given."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValidationError('Invalid date format', [field])
    text = value.strip()
    if not text:
        return None
    parsed = _parse_date_text(text)
    if parsed is None:
        raise ValidationError('Invalid date format', [field])
    return parsed.isoformat()


def require_date(value: Any, field: str = 'date') -> str:
    normalized = normalize_date(value, field)
    if normalized is None:
        raise ValidationError(f'{field.replace("_", " ").capitalize()} is required', [field])
    return normalized


def normalize_time(value: Any, field: str = 'time') -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, time):
        return value.replace(microsecond=0).isoformat()
    if not isinstance(value, str):
        raise ValidationError('Invalid time format', [field])
    text = value.strip()
    if not text:
        return None
    try:
        parsed = time.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError('Invalid time format', [field]) from exc
    return parsed.replace(microsecond=0, tzinfo=None).isoformat()
