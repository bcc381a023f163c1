"""Calendar helpers for day-based accounting."""

from datetime import date, datetime


def local_today() -> date:
    """Return the current calendar date on the local clock (midnight-truncated)."""
    return datetime.now().date()


def days_between(earlier: date, later: date) -> int:
    """Return the number of whole calendar days from earlier to later."""
    return (later - earlier).days
