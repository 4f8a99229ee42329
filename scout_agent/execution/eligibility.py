"""Scout runnability and frequency checks."""

from datetime import datetime, timedelta
from typing import Optional

from scout_agent.models import Frequency, Scout

MAX_SEARCH_QUERIES = 5

FREQUENCY_INTERVALS = {
    Frequency.daily: timedelta(days=1),
    Frequency.every_3_days: timedelta(days=3),
    Frequency.weekly: timedelta(days=7),
}


def is_any_location(location: Optional[dict]) -> bool:
    """The "any location" sentinel is stored as coordinates (0, 0)."""
    if not location:
        return False
    return location.get("latitude") == 0 and location.get("longitude") == 0


def missing_fields(scout: Scout) -> list[str]:
    """Required configuration fields that are not set."""
    missing = [
        name for name in ("title", "goal", "description", "location", "frequency")
        if not getattr(scout, name)
    ]
    if not scout.search_queries:
        missing.append("search_queries")
    return missing


def is_runnable(scout: Scout) -> bool:
    return scout.is_active and not missing_fields(scout)


def should_run(scout: Scout, now: Optional[datetime] = None) -> bool:
    """Runnable and its frequency interval has elapsed since the last run."""
    if not is_runnable(scout):
        return False
    if scout.last_run_at is None:
        return True
    now = now or datetime.utcnow()
    return now - scout.last_run_at >= FREQUENCY_INTERVALS[Frequency(scout.frequency)]


def max_age_ms(frequency: Optional[Frequency]) -> int:
    """Scrape cache age matching the scout's frequency (one day by default)."""
    interval = FREQUENCY_INTERVALS.get(frequency, FREQUENCY_INTERVALS[Frequency.daily])
    return int(interval.total_seconds() * 1000)
