"""
Timezone and date helpers for the fee ledger

All bucket and threshold comparisons work on calendar dates in the school's
local timezone.
"""

import calendar
import math
from datetime import datetime, date

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = 'Africa/Nairobi'


def get_school_timezone():
    """Return the configured school timezone"""
    tz_name = DEFAULT_TIMEZONE
    if has_app_context():
        tz_name = current_app.config.get('SCHOOL_TIMEZONE', DEFAULT_TIMEZONE)
    return pytz.timezone(tz_name)


def get_current_local_datetime():
    """Current time in the school timezone"""
    return datetime.now(pytz.utc).astimezone(get_school_timezone())


def get_current_local_date():
    """Today's calendar date in the school timezone"""
    return get_current_local_datetime().date()


def get_current_utc_datetime():
    return datetime.now(pytz.utc)


def parse_date(value):
    """
    Coerce a stored or submitted value into a date

    Accepts date/datetime objects and ISO strings ("2026-01-10",
    "2026-01-10 08:00:00", "2026-01-10T08:00:00.000Z").

    Returns:
        date or None
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def parse_datetime(value):
    """Like parse_date but keeps the time of day when one is stored"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    text_value = str(value).strip().replace('Z', '')
    try:
        return datetime.fromisoformat(text_value).replace(tzinfo=None)
    except ValueError:
        parsed = parse_date(text_value)
        return datetime.combine(parsed, datetime.min.time()) if parsed else None


def days_between(start_value, as_of):
    """
    Whole days from start_value to as_of, rounded up

    A due date carrying a time of day counts the partial day as a full one.
    """
    start = parse_datetime(start_value)
    if start is None:
        return 0
    end = datetime.combine(as_of, datetime.min.time())
    return math.ceil((end - start).total_seconds() / 86400)


def subtract_months(value, months):
    """Same day `months` calendar months earlier, clamped to month end"""
    month_index = value.month - 1 - months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def format_date(value, format_string='%Y-%m-%d'):
    parsed = parse_date(value)
    return parsed.strftime(format_string) if parsed else None
