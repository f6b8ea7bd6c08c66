"""Time utilities."""
from datetime import date, datetime, timedelta, timezone


def utc_now() -> str:
    """Get current UTC timestamp as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def today_iso(today: date | None = None) -> str:
    """Get a calendar date as YYYY-MM-DD (defaults to today)."""
    return (today or date.today()).isoformat()


def add_days_iso(days: int, today: date | None = None) -> str:
    """Get the YYYY-MM-DD date `days` after today."""
    return ((today or date.today()) + timedelta(days=days)).isoformat()

