"""Venue-local clock"""

from datetime import datetime
from zoneinfo import ZoneInfo

from dinebook.config import settings


def venue_now() -> datetime:
    """Current wall-clock time at the venue, as a naive datetime.

    Reservation dates and times are stored as the venue's local time, so all
    comparisons against them use this clock.
    """
    return datetime.now(ZoneInfo(settings.venue_timezone)).replace(tzinfo=None)
