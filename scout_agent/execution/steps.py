"""Execution step persistence and read-time stuck detection.

Step writes are best-effort: every write goes through ``retry_db_operation``
and a step that cannot be stored never aborts the run. Stuck detection is
evaluated lazily from stored data; nothing rewrites a stuck step's status.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from scout_agent.config import Settings, settings as default_settings
from scout_agent.database import get_session
from scout_agent.execution.results import SoftResult
from scout_agent.execution.retry import DEFAULT_MAX_ATTEMPTS, retry_db_operation
from scout_agent.models import ScoutExecutionStep, StepStatus, StepType

logger = logging.getLogger(__name__)


# --- Payload schemas, keyed by step type ---

class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class SearchInput(_Payload):
    query: str
    location: Optional[str] = None
    limit: Optional[int] = None


class SearchOutput(_Payload):
    results_count: int = 0
    urls: list[str] = []


class ScrapeInput(_Payload):
    url: str


class ScrapeOutput(_Payload):
    title: str = ""
    content_length: int = 0


class AnalyzeInput(_Payload):
    goal: str = ""
    sources_count: int = 0


class AnalyzeOutput(_Payload):
    task_completed: Optional[bool] = None
    task_status: Optional[str] = None


class SummarizeInput(_Payload):
    response_length: int = 0


class SummarizeOutput(_Payload):
    summary: str = ""


class ToolCallInput(_Payload):
    tool: str
    arguments: dict[str, Any] = {}


class ToolCallOutput(_Payload):
    result: Any = None


PAYLOAD_SCHEMAS: dict[StepType, tuple[type[_Payload], type[_Payload]]] = {
    StepType.search: (SearchInput, SearchOutput),
    StepType.scrape: (ScrapeInput, ScrapeOutput),
    StepType.analyze: (AnalyzeInput, AnalyzeOutput),
    StepType.summarize: (SummarizeInput, SummarizeOutput),
    StepType.tool_call: (ToolCallInput, ToolCallOutput),
}


def validate_payload(
    step_type: StepType, payload: Optional[dict], *, output: bool = False
) -> Optional[dict]:
    """Validate a step payload against its step type's schema.

    Raises ``pydantic.ValidationError`` when the payload does not match.
    """
    if payload is None:
        return None
    input_model, output_model = PAYLOAD_SCHEMAS[StepType(step_type)]
    model = output_model if output else input_model
    return model.model_validate(payload).model_dump(mode="json")


@dataclass
class StepData:
    step_type: StepType
    description: str = ""
    input_data: Optional[dict] = None


@dataclass
class StepUpdate:
    status: StepStatus
    output_data: Optional[dict] = None
    error_message: Optional[str] = None


# --- Read-time helpers ---

def stuck_threshold(config: Settings = default_settings) -> timedelta:
    return timedelta(minutes=config.stuck_step_minutes)


def is_stuck(
    step: ScoutExecutionStep,
    now: Optional[datetime] = None,
    threshold: Optional[timedelta] = None,
) -> bool:
    """A step still ``running`` past the threshold (``stuck_step_minutes`` by default) is stuck."""
    if step.status != StepStatus.running:
        return False
    now = now or datetime.utcnow()
    threshold = threshold or stuck_threshold()
    return now - step.started_at > threshold


def effective_status(
    step: ScoutExecutionStep,
    now: Optional[datetime] = None,
    threshold: Optional[timedelta] = None,
) -> StepStatus:
    """Status to display: stuck steps read as failed."""
    if is_stuck(step, now, threshold):
        return StepStatus.failed
    return StepStatus(step.status)


class StepTracker:
    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._sleep = sleep

    def _retry(self, operation, name: str) -> SoftResult:
        kwargs = {"max_attempts": self._max_attempts}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return retry_db_operation(operation, name, **kwargs)

    def create_step(self, execution_id: str, step_number: int, data: StepData) -> SoftResult[bool]:
        """Insert a ``running`` step. Safe to retry: one row per (execution, step number)."""
        try:
            input_data = validate_payload(data.step_type, data.input_data)
        except ValidationError as e:
            logger.error("Invalid %s step input for execution %s: %s", data.step_type, execution_id, e)
            return SoftResult.skipped(str(e))

        def _insert() -> bool:
            with self._session_factory() as session:
                existing = session.exec(
                    select(ScoutExecutionStep)
                    .where(ScoutExecutionStep.execution_id == execution_id)
                    .where(ScoutExecutionStep.step_number == step_number)
                ).first()
                if existing:
                    return True
                session.add(ScoutExecutionStep(
                    execution_id=execution_id,
                    step_number=step_number,
                    step_type=StepType(data.step_type),
                    description=data.description,
                    input_data=input_data,
                    status=StepStatus.running,
                    started_at=datetime.utcnow(),
                ))
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    logger.debug("Step %d of execution %s already stored", step_number, execution_id)
                return True

        return self._retry(
            _insert, f"createStep (execution: {execution_id}, step: {step_number})"
        )

    def update_step(self, execution_id: str, step_number: int, updates: StepUpdate) -> SoftResult[bool]:
        """Set status/output/error on a step and stamp its completion time."""

        def _update() -> bool:
            with self._session_factory() as session:
                step = session.exec(
                    select(ScoutExecutionStep)
                    .where(ScoutExecutionStep.execution_id == execution_id)
                    .where(ScoutExecutionStep.step_number == step_number)
                ).first()
                if step is None:
                    return False
                output_data = updates.output_data
                if output_data is not None:
                    try:
                        output_data = validate_payload(step.step_type, output_data, output=True)
                    except ValidationError as e:
                        logger.warning("Storing unvalidated %s output: %s", step.step_type, e)
                step.status = updates.status
                step.output_data = output_data
                step.error_message = updates.error_message
                step.completed_at = datetime.utcnow()
                session.add(step)
                session.commit()
                return True

        result = self._retry(
            _update,
            f"updateStep (execution: {execution_id}, step: {step_number}, status: {updates.status.value})",
        )
        if result.ok and not result.value:
            logger.warning("Step %d of execution %s not found for update", step_number, execution_id)
            return SoftResult.skipped("step not found")
        return result

    def list_steps(self, execution_id: str) -> list[ScoutExecutionStep]:
        with self._session_factory() as session:
            return list(session.exec(
                select(ScoutExecutionStep)
                .where(ScoutExecutionStep.execution_id == execution_id)
                .order_by(ScoutExecutionStep.step_number)
            ).all())


class StepRecorder:
    """Hands strictly increasing step numbers to the agent for one execution."""

    def __init__(self, tracker: StepTracker, execution_id: str):
        self.tracker = tracker
        self.execution_id = execution_id
        self._last_step = 0
        self.api_calls = 0

    @property
    def steps_count(self) -> int:
        return self._last_step

    def start(
        self,
        step_type: StepType,
        description: str,
        input_data: Optional[dict] = None,
    ) -> int:
        self._last_step += 1
        step_number = self._last_step
        if step_type in (StepType.search, StepType.scrape):
            self.api_calls += 1
        self.tracker.create_step(
            self.execution_id,
            step_number,
            StepData(step_type=step_type, description=description, input_data=input_data),
        )
        return step_number

    def complete(self, step_number: int, output_data: Optional[dict] = None) -> None:
        self.tracker.update_step(
            self.execution_id,
            step_number,
            StepUpdate(status=StepStatus.completed, output_data=output_data),
        )

    def fail(self, step_number: int, error: str) -> None:
        self.tracker.update_step(
            self.execution_id,
            step_number,
            StepUpdate(status=StepStatus.failed, error_message=error),
        )
