"""Read path for execution progress.

Stuck steps are reported as failed here; stored rows are never rewritten.
"""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlmodel import select

from scout_agent.errors import Forbidden
from scout_agent.execution.steps import effective_status, is_stuck, stuck_threshold
from scout_agent.models import Scout, ScoutExecution, ScoutExecutionStep, User
from scout_agent.services import Services
from scout_agent.web.deps import get_services, require_user

router = APIRouter()


def _step_to_dict(step: ScoutExecutionStep, now: datetime, threshold: timedelta) -> dict:
    data = step.model_dump(mode="json")
    data["effective_status"] = effective_status(step, now, threshold).value
    data["is_stuck"] = is_stuck(step, now, threshold)
    return data


@router.get("/{scout_id}/executions")
def list_executions(
    scout_id: str,
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_user),
    services: Services = Depends(get_services),
):
    now = datetime.utcnow()
    threshold = stuck_threshold(services.config)

    with services.session_factory() as session:
        scout = session.get(Scout, scout_id)
        if scout is None or scout.user_id != user.id:
            raise Forbidden()

        executions = session.exec(
            select(ScoutExecution)
            .where(ScoutExecution.scout_id == scout_id)
            .order_by(ScoutExecution.started_at.desc())
            .limit(limit)
        ).all()
        execution_ids = [e.id for e in executions]
        steps = session.exec(
            select(ScoutExecutionStep)
            .where(ScoutExecutionStep.execution_id.in_(execution_ids))
            .order_by(ScoutExecutionStep.step_number)
        ).all() if execution_ids else []

    steps_by_execution: dict[str, list[dict]] = {}
    for step in steps:
        steps_by_execution.setdefault(step.execution_id, []).append(
            _step_to_dict(step, now, threshold)
        )

    return {
        "scoutId": scout_id,
        "executions": [
            {**e.model_dump(mode="json"), "steps": steps_by_execution.get(e.id, [])}
            for e in executions
        ],
    }
