"""APScheduler background jobs for scout automation.

Schedule:
  - Scout tick: every ``scheduler_tick_minutes`` (default 15), enqueue each
    active scout whose frequency interval has elapsed
"""

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import select

from scout_agent.execution.dispatcher import TriggerDispatcher
from scout_agent.execution.eligibility import should_run
from scout_agent.models import Scout

logger = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None


def due_scouts(session_factory, now: datetime | None = None) -> list[Scout]:
    """Active scouts whose frequency interval has elapsed."""
    with session_factory() as session:
        scouts = session.exec(select(Scout).where(Scout.is_active == True)).all()  # noqa: E712
    now = now or datetime.utcnow()
    return [s for s in scouts if should_run(s, now)]


def scout_tick(dispatcher: TriggerDispatcher, session_factory) -> int:
    """Scheduled job: enqueue a run for every due scout. Returns the number queued."""
    logger.info("Scheduled job: scout_tick starting")
    queued = 0
    for scout in due_scouts(session_factory):
        try:
            dispatcher.enqueue_scheduled(scout.id)
        except Exception as e:
            logger.error("Failed to queue scout %s: %s", scout.id, e)
            continue
        queued += 1
    logger.info("Scheduled job: scout_tick done, %d scouts queued", queued)
    return queued


def start_scheduler(dispatcher: TriggerDispatcher, session_factory, tick_minutes: int = 15) -> BackgroundScheduler:
    """Start the background scheduler with the scout tick job."""
    global _scheduler

    if _scheduler and _scheduler.running:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = BackgroundScheduler(
        job_defaults={"coalesce": True, "max_instances": 1},
    )

    _scheduler.add_job(
        scout_tick,
        trigger=IntervalTrigger(minutes=tick_minutes),
        args=[dispatcher, session_factory],
        id="scout_tick",
        name=f"Scout tick (every {tick_minutes}m)",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Scheduler started with %d jobs", len(_scheduler.get_jobs()))
    for job in _scheduler.get_jobs():
        logger.info("  Job: %s, next run: %s", job.name, job.next_run_time)

    return _scheduler


def stop_scheduler() -> None:
    """Stop the background scheduler gracefully."""
    global _scheduler

    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None
