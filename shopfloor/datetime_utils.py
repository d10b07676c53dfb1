"""
DateTime utility functions for the application.

The scheduling core works on naive datetimes expressed in plant-local time.
Everything entering from the outside (HTTP payloads, the wall clock) goes
through these helpers first.
"""
from datetime import datetime, date
from zoneinfo import ZoneInfo

PLANNING_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def get_plant_timezone(tz_name):
    """
    Get the plant timezone object.

    Returns:
        ZoneInfo: timezone for tz_name
    """
    return ZoneInfo(tz_name)


def to_plant_local(dt, tz_name):
    """
    Normalize a datetime to naive plant-local time.

    Aware datetimes are converted into the plant zone and stripped of tzinfo.
    Naive datetimes are assumed to already be plant-local and returned as-is.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(get_plant_timezone(tz_name)).replace(tzinfo=None)


def parse_planning_timestamp(value, tz_name):
    """
    Parse an ISO timestamp (or a date) into naive plant-local time.

    Accepts 'Z' suffixes and offsets. Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        return to_plant_local(value, tz_name)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid timestamp: {value!r}")

    parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    return to_plant_local(parsed, tz_name)


def parse_planning_date(value):
    """Parse a YYYY-MM-DD string. Raises ValueError on bad input."""
    if isinstance(value, date):
        return value
    return datetime.strptime(value, '%Y-%m-%d').date()


def format_planning_timestamp(dt):
    """Format like the planning table stores it: 2026-02-11T09:00:00"""
    if dt is None:
        return None
    return dt.strftime(PLANNING_TIMESTAMP_FORMAT)


def plant_now(tz_name):
    """Current wall-clock time as naive plant-local time."""
    return datetime.now(get_plant_timezone(tz_name)).replace(tzinfo=None, microsecond=0)
