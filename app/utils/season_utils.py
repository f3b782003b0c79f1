"""
Season helpers. An F1 season is a calendar year.
"""

from app.utils.timezone_utils import get_utc_time


def get_current_season(now=None):
    """Season year for the given moment (defaults to now, UTC)"""
    now = now or get_utc_time()
    return now.year


def season_or_current(season):
    """Resolve an optional season argument, e.g. from the CLI"""
    return int(season) if season else get_current_season()
