"""Trigger dispatch for manual and scheduled scout runs.

Manual runs are gated (auth, ownership, rate limits) and handed to the
execution queue without waiting. Scheduled runs come from the trusted
scheduler and run to completion.
"""

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from sqlmodel import Session

from scout_agent.database import get_session
from scout_agent.errors import (
    DispatchError,
    Forbidden,
    NotRunnable,
    ScoutAgentError,
    ScoutNotFound,
    Unauthenticated,
)
from scout_agent.execution.eligibility import is_runnable, missing_fields
from scout_agent.execution.orchestrator import ExecutionOrchestrator
from scout_agent.execution.rate_limiter import RateLimiter
from scout_agent.models import Scout, ScoutExecution, TriggerSource, User

logger = logging.getLogger(__name__)


class ExecutionQueue:
    """Fire-and-forget hand-off: each enqueue is a one-shot background job."""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self._scheduler = scheduler or BackgroundScheduler(
            job_defaults={"coalesce": False, "misfire_grace_time": None},
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Execution queue started")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Execution queue stopped")

    def enqueue(self, func: Callable, *args, name: str = "") -> str:
        """Schedule ``func(*args)`` to run now. Raises ``DispatchError`` if not accepted."""
        try:
            job = self._scheduler.add_job(func, trigger=DateTrigger(), args=list(args), name=name or None)
        except Exception as e:
            logger.error("Failed to enqueue %s: %s", name or func, e)
            raise DispatchError(f"Failed to start scout execution: {e}") from e
        return job.id


class TriggerDispatcher:
    def __init__(
        self,
        rate_limiter: RateLimiter,
        orchestrator: ExecutionOrchestrator,
        queue: ExecutionQueue,
        session_factory: Callable[[], Session] = get_session,
    ):
        self.rate_limiter = rate_limiter
        self.orchestrator = orchestrator
        self.queue = queue
        self._session_factory = session_factory

    def _load_scout(self, scout_id: str) -> Optional[Scout]:
        with self._session_factory() as session:
            return session.get(Scout, scout_id)

    def dispatch_manual(self, user: Optional[User], scout_id: str) -> Scout:
        """Gate a user-initiated run and hand it off without waiting for the result.

        Returning means "accepted for processing", not "completed".
        """
        if user is None:
            raise Unauthenticated()

        scout = self._load_scout(scout_id)
        if scout is None or scout.user_id != user.id:
            raise Forbidden()

        self.rate_limiter.check(scout)

        self.queue.enqueue(
            self._execute_background, scout.id, TriggerSource.manual, name=f"scout-run:{scout.id}"
        )
        logger.info("Manual run of scout %s accepted for user %s", scout.id, user.id)
        return scout

    def _execute_background(self, scout_id: str, trigger_source: TriggerSource) -> None:
        scout = self._load_scout(scout_id)
        if scout is None:
            logger.error("Scout %s disappeared before its run started", scout_id)
            return
        if not is_runnable(scout):
            logger.warning(
                "Scout %s is not runnable (active=%s, missing=%s); run dropped",
                scout_id, scout.is_active, missing_fields(scout),
            )
            return

        result = self.orchestrator.run(scout, trigger_source)
        if not result.ok:
            logger.error("Background run of scout %s failed: %s", scout_id, result.error)

    def run_scheduled(self, scout_id: str) -> tuple[Scout, ScoutExecution]:
        """Run a scheduler-selected scout to completion.

        Raises ``ScoutNotFound`` or ``NotRunnable`` before any write, and
        ``ExecutionError`` if the execution's state could not be recorded.
        """
        scout = self._load_scout(scout_id)
        if scout is None:
            raise ScoutNotFound(scout_id)
        if not scout.is_active:
            raise NotRunnable(scout_id, "is not active")
        if missing_fields(scout):
            raise NotRunnable(scout_id, "configuration is not complete")

        logger.info("Executing scout: %s", scout_id)
        execution = self.orchestrator.run(scout, TriggerSource.automatic).unwrap()
        return scout, execution

    def _run_scheduled_job(self, scout_id: str) -> None:
        try:
            self.run_scheduled(scout_id)
        except ScoutAgentError as e:
            logger.warning("Scheduled run of scout %s skipped: %s", scout_id, e)

    def enqueue_scheduled(self, scout_id: str) -> str:
        """Queue a scheduled run; used by the periodic tick."""
        return self.queue.enqueue(self._run_scheduled_job, scout_id, name=f"scout-cron:{scout_id}")
