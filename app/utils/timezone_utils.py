"""
Timezone utility functions for the F1 Podium Predictor

Race times are stored in UTC. The configured TIMEZONE only affects display.
"""

from datetime import datetime, timezone

import pytz
from flask import current_app


def get_app_timezone():
    """Get the application's configured timezone"""
    try:
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def as_utc(dt):
    """Return an aware UTC datetime; naive values are taken to be UTC"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def minutes_until(starts_at, now=None):
    """
    Whole minutes from now until starts_at, truncated toward zero.

    5:00 before the start is 5, 4:59 is 4 and anything after the start is
    zero or negative.
    """
    now = as_utc(now) if now is not None else get_utc_time()
    seconds = (as_utc(starts_at) - now).total_seconds()
    return int(seconds / 60)


def convert_to_app_timezone(dt):
    """Convert a datetime to the application's timezone"""
    if dt is None:
        return None

    return as_utc(dt).astimezone(get_app_timezone())


def format_race_time(dt, format_str="%a %d %b at %H:%M %Z"):
    """Format a race start in the application's timezone"""
    if dt is None:
        return "TBD"

    return convert_to_app_timezone(dt).strftime(format_str)
