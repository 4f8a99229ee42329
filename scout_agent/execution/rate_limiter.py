"""Manual-run gates: per-scout cooldown and per-user daily cap.

Both checks are read-only and run against the record store, the only place
runs are coordinated.
"""

import logging
import math
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlmodel import Session, func, select

from scout_agent.config import Settings, settings as default_settings
from scout_agent.database import get_session
from scout_agent.errors import RateLimited
from scout_agent.models import Scout, ScoutExecution

logger = logging.getLogger(__name__)


def start_of_day_utc(now_utc: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Naive UTC instant of the most recent midnight in ``tz`` (server local if None)."""
    local_now = now_utc.replace(tzinfo=timezone.utc).astimezone(tz)
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


class RateLimiter:
    def __init__(
        self,
        config: Settings = default_settings,
        session_factory: Callable[[], Session] = get_session,
        clock: Callable[[], datetime] = datetime.utcnow,
        tz: Optional[tzinfo] = None,
    ):
        self.cooldown = timedelta(minutes=config.manual_run_cooldown_minutes)
        self.daily_limit = config.max_daily_executions_per_user
        if tz is None and config.daily_cap_timezone:
            tz = ZoneInfo(config.daily_cap_timezone)
        self._tz = tz
        self._session_factory = session_factory
        self._clock = clock

    def cooldown_remaining(self, scout_id: str) -> int:
        """Seconds until the scout may run again; 0 when the gate is open."""
        with self._session_factory() as session:
            last_start = session.exec(
                select(ScoutExecution.started_at)
                .where(ScoutExecution.scout_id == scout_id)
                .order_by(ScoutExecution.started_at.desc())
                .limit(1)
            ).first()
        if last_start is None:
            return 0
        elapsed = self._clock() - last_start
        if elapsed >= self.cooldown:
            return 0
        return math.ceil((self.cooldown - elapsed).total_seconds())

    def executions_today(self, user_id: str) -> int:
        """Executions started since local midnight across all of the user's scouts."""
        since = start_of_day_utc(self._clock(), self._tz)
        with self._session_factory() as session:
            return session.exec(
                select(func.count(ScoutExecution.id))
                .join(Scout, Scout.id == ScoutExecution.scout_id)
                .where(Scout.user_id == user_id)
                .where(ScoutExecution.started_at >= since)
            ).one()

    def check(self, scout: Scout) -> None:
        """Raise ``RateLimited`` if either gate is closed."""
        remaining = self.cooldown_remaining(scout.id)
        if remaining > 0:
            logger.info("Rate limited: %ds remaining for scout %s", remaining, scout.id)
            minutes = math.ceil(remaining / 60)
            raise RateLimited(
                f"Please wait {minutes} minute{'' if minutes == 1 else 's'} before running this scout again",
                cooldown_remaining=remaining,
            )

        count = self.executions_today(scout.user_id)
        if count >= self.daily_limit:
            logger.info("Daily limit reached: %d/%d for user %s", count, self.daily_limit, scout.user_id)
            raise RateLimited(
                f"Daily execution limit reached ({self.daily_limit} per day). Please try again tomorrow.",
                daily_limit=self.daily_limit,
                current_count=count,
            )
