"""
Doctor availability -> bookable slot times.

Availability is stored as JSON keyed by weekday ('mon'..'sun'). A day is
either an object {"start": "09:00", "end": "17:00", "slots": 8}, a range
string "09:00-12:00", a list of range strings, or an "off" marker.
"""
import json
import logging
from datetime import date
from typing import List

from app.utils.dates import parse_time, format_minutes

logger = logging.getLogger(__name__)

SLOT_STEP_MINUTES = 30
WEEKDAY_KEYS = ['mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun']
OFF_MARKERS = {'', 'off', '—', '-', 'none'}

DEFAULT_AVAILABILITY = {
    'mon': {'start': '09:00', 'end': '17:00', 'slots': 8},
    'tue': {'start': '09:00', 'end': '17:00', 'slots': 8},
    'wed': {'start': '09:00', 'end': '17:00', 'slots': 8},
    'thu': {'start': '09:00', 'end': '17:00', 'slots': 8},
    'fri': {'start': '09:00', 'end': '17:00', 'slots': 8},
    'sat': 'off',
    'sun': 'off',
}


def weekday_key(day: date) -> str:
    return WEEKDAY_KEYS[day.weekday()]


def load_availability(raw) -> dict:
    """Decode stored availability; anything unreadable counts as no availability"""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unreadable availability JSON: %r", raw)
        return {}
    return value if isinstance(value, dict) else {}


def _stepped(start: int, end: int) -> List[int]:
    return list(range(start, end, SLOT_STEP_MINUTES)) if end > start else []


def _expand_range(text: str) -> List[int]:
    if '-' not in text:
        return []
    start_str, end_str = text.split('-', 1)
    start, end = parse_time(start_str), parse_time(end_str)
    if start is None or end is None:
        return []
    return _stepped(start, end)


def _expand_day(value) -> List[int]:
    if value is None:
        return []
    if isinstance(value, str):
        if value.strip().lower() in OFF_MARKERS:
            return []
        return _expand_range(value.strip())
    if isinstance(value, list):
        minutes = []
        for item in value:
            if isinstance(item, str):
                minutes.extend(_expand_range(item.strip()))
        return minutes
    if isinstance(value, dict):
        start, end = parse_time(value.get('start', '')), parse_time(value.get('end', ''))
        if start is None or end is None or end <= start:
            return []
        try:
            count = int(value.get('slots') or 0)
        except (TypeError, ValueError):
            count = 0
        if count > 0:
            span = end - start
            return [int(round(start + i * (span / count))) for i in range(count)]
        return _stepped(start, end)
    return []


def slots_for_day(availability, day: date) -> List[str]:
    """Distinct, sorted HH:MM start times the doctor offers on the given date"""
    days = load_availability(availability)
    minutes = _expand_day(days.get(weekday_key(day)))
    return [format_minutes(m) for m in sorted(set(minutes))]
