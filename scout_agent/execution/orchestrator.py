"""Execution orchestrator: one scout run from insert to terminal state.

Lifecycle:
  start (insert running + last_run_at) → resolve credential → agent
  → completion write → duplicate check → notify → usage log

Only the start and completion writes are hard requirements. Everything else
is telemetry and can fail without changing the execution's outcome.
"""

import logging
from datetime import datetime, timedelta
from difflib import SequenceMatcher
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from scout_agent.agent.base import Agent, AgentResult
from scout_agent.config import Settings, settings as default_settings
from scout_agent.database import get_session
from scout_agent.errors import CredentialRejected, ExecutionAlreadyRunning, ExecutionError
from scout_agent.execution.credentials import CredentialResolver, FirecrawlKeyResult
from scout_agent.execution.results import Result, SoftResult
from scout_agent.execution.retry import retry_db_operation
from scout_agent.execution.steps import StepRecorder, StepTracker
from scout_agent.models import ExecutionStatus, Scout, ScoutExecution, TriggerSource
from scout_agent.notifications.analytics import UsageLogger
from scout_agent.notifications.notifier import EmailNotifier

logger = logging.getLogger(__name__)

ABANDONED_MESSAGE = "Execution abandoned (no completion recorded)"


def response_similarity(previous: str, current: str) -> float:
    """Similarity ratio in [0, 1] between two response texts."""
    if not previous or not current:
        return 0.0
    return SequenceMatcher(None, previous.strip(), current.strip()).ratio()


class ExecutionOrchestrator:
    def __init__(
        self,
        agent: Agent,
        config: Settings = default_settings,
        session_factory: Callable[[], Session] = get_session,
        resolver: Optional[CredentialResolver] = None,
        step_tracker: Optional[StepTracker] = None,
        notifier: Optional[EmailNotifier] = None,
        usage_logger: Optional[UsageLogger] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.agent = agent
        self.config = config
        self._session_factory = session_factory
        self.resolver = resolver or CredentialResolver(session_factory)
        self.step_tracker = step_tracker or StepTracker(session_factory, sleep=sleep)
        self.notifier = notifier or EmailNotifier(config, session_factory)
        self.usage_logger = usage_logger or UsageLogger(config, session_factory, sleep=sleep)
        self._clock = clock
        self._sleep = sleep

    def _retry(self, operation, name: str) -> SoftResult:
        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        return retry_db_operation(operation, name, **kwargs)

    # --- start ---

    def _close_stale(self, session: Session, scout_id: str, now: datetime) -> None:
        cutoff = now - timedelta(minutes=self.config.stale_execution_minutes)
        stale = session.exec(
            select(ScoutExecution)
            .where(ScoutExecution.scout_id == scout_id)
            .where(ScoutExecution.status == ExecutionStatus.running)
            .where(ScoutExecution.started_at < cutoff)
        ).all()
        for execution in stale:
            logger.warning("Closing abandoned execution %s of scout %s", execution.id, scout_id)
            execution.status = ExecutionStatus.failed
            execution.completed_at = now
            execution.error_message = ABANDONED_MESSAGE
            session.add(execution)
        if stale:
            session.flush()

    def start(self, scout: Scout, trigger_source: TriggerSource) -> ScoutExecution:
        """Insert the running execution and stamp ``last_run_at`` in one transaction.

        Raises ``ExecutionAlreadyRunning`` if the scout has a live running
        execution, ``ExecutionError`` if the write fails for any other reason.
        """
        now = self._clock()
        try:
            with self._session_factory() as session:
                self._close_stale(session, scout.id, now)
                stored = session.get(Scout, scout.id)
                if stored is not None:
                    stored.last_run_at = now
                    stored.updated_at = now
                    session.add(stored)
                execution = ScoutExecution(
                    scout_id=scout.id,
                    status=ExecutionStatus.running,
                    trigger_source=TriggerSource(trigger_source),
                    started_at=now,
                )
                session.add(execution)
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    raise ExecutionAlreadyRunning(scout.id)
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(f"Failed to create execution for scout {scout.id}: {e}") from e

        scout.last_run_at = now
        logger.info("Execution %s started for scout %s (%s)", execution.id, scout.id, execution.trigger_source.value)
        return execution

    # --- agent ---

    def _fall_back(self, scout: Scout, error: CredentialRejected) -> FirecrawlKeyResult:
        logger.warning("Personal Firecrawl key rejected for user %s, retrying with fallback", scout.user_id)
        self.resolver.mark_invalid(scout.user_id, str(error))
        return self.resolver.resolve(scout.user_id, self.config.firecrawl_api_key)

    # --- completion ---

    def _previous_response(self, scout_id: str, execution_id: str) -> Optional[str]:
        with self._session_factory() as session:
            previous = session.exec(
                select(ScoutExecution)
                .where(ScoutExecution.scout_id == scout_id)
                .where(ScoutExecution.id != execution_id)
                .where(ScoutExecution.status == ExecutionStatus.completed)
                .order_by(ScoutExecution.started_at.desc())
                .limit(1)
            ).first()
        if previous is None or not previous.results_summary:
            return None
        return previous.results_summary.get("response")

    def _finish(
        self,
        execution: ScoutExecution,
        status: ExecutionStatus,
        *,
        used_fallback: Optional[bool],
        results_summary: Optional[dict] = None,
        summary_text: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Result[ScoutExecution]:
        """Move the execution to a terminal state and update the scout's failure counter.

        Falls back to a status-only write so the execution never stays running.
        """
        now = self._clock()

        def _write() -> ScoutExecution:
            with self._session_factory() as session:
                stored = session.get(ScoutExecution, execution.id)
                if stored is None:
                    raise ExecutionError(f"Execution {execution.id} not found")
                stored.status = status
                stored.completed_at = now
                stored.results_summary = results_summary
                stored.summary_text = summary_text
                stored.error_message = error_message
                stored.used_fallback_key = used_fallback
                session.add(stored)

                scout = session.get(Scout, stored.scout_id)
                if scout is not None:
                    if status == ExecutionStatus.completed:
                        scout.consecutive_failures = 0
                    else:
                        scout.consecutive_failures = (scout.consecutive_failures or 0) + 1
                    scout.updated_at = now
                    session.add(scout)
                session.commit()
                return stored

        result = self._retry(_write, f"completeExecution (execution: {execution.id}, status: {status.value})")
        if result.ok:
            return Result.success(result.value)

        def _write_status() -> bool:
            with self._session_factory() as session:
                session.execute(
                    update(ScoutExecution)
                    .where(ScoutExecution.id == execution.id)
                    .values(status=status, completed_at=now, error_message=error_message)
                )
                session.commit()
            return True

        minimal = self._retry(_write_status, f"markExecutionStatus (execution: {execution.id})")
        if minimal.ok:
            logger.warning("Execution %s closed with status-only write", execution.id)
            execution.status = status
            execution.completed_at = now
            execution.error_message = error_message
            return Result.success(execution)

        logger.error("Execution %s could not be moved to %s: %s", execution.id, status.value, minimal.error)
        return Result.failure(ExecutionError(
            f"Failed to record {status.value} state for execution {execution.id}: {minimal.error}"
        ))

    def _duration_ms(self, execution: ScoutExecution) -> int:
        return int((self._clock() - execution.started_at).total_seconds() * 1000)

    def _on_success(
        self,
        scout: Scout,
        execution: ScoutExecution,
        agent_result: AgentResult,
        recorder: StepRecorder,
    ) -> None:
        response = agent_result.response
        is_duplicate = False
        if response.has_results:
            try:
                previous = self._previous_response(scout.id, execution.id)
            except Exception as e:
                logger.warning("Duplicate check skipped for execution %s: %s", execution.id, e)
                previous = None
            similarity = response_similarity(previous or "", response.response)
            if similarity >= self.config.duplicate_similarity_threshold:
                is_duplicate = True
                logger.info("Execution %s duplicates previous results (similarity %.2f)", execution.id, similarity)
                self.usage_logger.track_duplicate_detected(scout, execution.id, similarity)

        api_calls = agent_result.api_calls or recorder.api_calls
        self.usage_logger.track_execution_completed(
            scout,
            execution.id,
            duration_ms=self._duration_ms(execution),
            steps_count=recorder.steps_count,
            results_found=response.has_results,
            is_duplicate=is_duplicate,
            api_calls_count=api_calls,
        )

        if response.has_results and not is_duplicate:
            sent = self.notifier.send_scout_success(scout, response.response)
            if sent.ok or sent.error not in ("resend_not_configured", "no_email"):
                self.usage_logger.track_email_notification(scout, execution.id, sent.ok, sent.error)

    # --- entry point ---

    def run(self, scout: Scout, trigger_source: TriggerSource = TriggerSource.automatic) -> Result[ScoutExecution]:
        """Execute the scout once and return the execution in its terminal state.

        An agent failure is a successful state transition to ``failed``; the
        result only carries an error when a state transition itself fails.
        """
        try:
            execution = self.start(scout, trigger_source)
        except ExecutionError as e:
            logger.error("Could not start execution for scout %s: %s", scout.id, e)
            return Result.failure(e)

        credential = self.resolver.resolve(scout.user_id, self.config.firecrawl_api_key)
        self.usage_logger.track_execution_started(scout, execution.id, trigger_source)
        recorder = StepRecorder(self.step_tracker, execution.id)

        try:
            try:
                agent_result = self.agent.run(scout, credential.api_key, recorder)
            except CredentialRejected as e:
                if credential.used_fallback:
                    raise
                credential = self._fall_back(scout, e)
                agent_result = self.agent.run(scout, credential.api_key, recorder)
        except Exception as e:
            error_message = str(e) or e.__class__.__name__
            logger.exception("Agent failed for execution %s of scout %s", execution.id, scout.id)
            finished = self._finish(
                execution,
                ExecutionStatus.failed,
                used_fallback=credential.used_fallback,
                error_message=error_message,
            )
            self.usage_logger.track_execution_failed(
                scout, execution.id, error_message, self._duration_ms(execution)
            )
            self.usage_logger.log_firecrawl_usage(scout, execution.id, credential, recorder.api_calls)
            return finished

        finished = self._finish(
            execution,
            ExecutionStatus.completed,
            used_fallback=credential.used_fallback,
            results_summary=agent_result.response.to_summary(),
            summary_text=agent_result.summary_text,
        )
        if finished.ok:
            try:
                self._on_success(scout, execution, agent_result, recorder)
            except Exception as e:
                logger.error("Post-completion handling failed for execution %s: %s", execution.id, e)
        self.usage_logger.log_firecrawl_usage(
            scout, execution.id, credential, agent_result.api_calls or recorder.api_calls
        )
        logger.info("Execution %s finished for scout %s", execution.id, scout.id)
        return finished
