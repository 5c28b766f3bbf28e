"""
Date helpers shared by routes and services
"""
from datetime import datetime, date, timezone
from typing import Optional


def parse_date(value) -> Optional[date]:
    """Parse YYYY-MM-DD (or an ISO datetime) into a date; None when blank or invalid"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], '%Y-%m-%d').date()
    except ValueError:
        return None


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO datetime string into naive UTC (offsets and a trailing Z allowed); bare dates become midnight"""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1]
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            only_date = parse_date(text)
            if only_date is None:
                return None
            return datetime.combine(only_date, datetime.min.time())
    # Stored datetimes are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.replace(tzinfo=None)


def parse_time(value: str) -> Optional[int]:
    """HH:MM -> minutes since midnight"""
    try:
        hours, minutes = str(value).strip().split(':')[:2]
        hours, minutes = int(hours), int(minutes)
    except (ValueError, AttributeError):
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes


def format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"
