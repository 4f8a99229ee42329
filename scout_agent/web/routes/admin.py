import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import delete
from sqlmodel import select

from scout_agent.errors import BadRequest
from scout_agent.models import (
    ExecutionStatus,
    FirecrawlUsageLog,
    Scout,
    ScoutExecution,
    ScoutExecutionStep,
    User,
    UserPreferences,
)
from scout_agent.services import Services
from scout_agent.web.deps import get_services, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


class DeleteUserRequest(BaseModel):
    userId: Optional[str] = None


def _empty_stats() -> dict:
    return {
        "scoutCount": 0,
        "executionCount": 0,
        "completedExecutions": 0,
        "failedExecutions": 0,
        "firecrawlStatus": None,
    }


def _get_stats(session):
    users = session.exec(select(User).order_by(User.created_at.desc())).all()
    scout_owners = session.exec(select(Scout.user_id)).all()
    executions = session.exec(
        select(Scout.user_id, ScoutExecution.status)
        .select_from(ScoutExecution)
        .join(Scout, Scout.id == ScoutExecution.scout_id)
    ).all()
    preferences = session.exec(select(UserPreferences)).all()

    stats: dict[str, dict] = {}
    for user_id in scout_owners:
        stats.setdefault(user_id, _empty_stats())["scoutCount"] += 1
    for user_id, status in executions:
        entry = stats.setdefault(user_id, _empty_stats())
        entry["executionCount"] += 1
        if status == ExecutionStatus.completed:
            entry["completedExecutions"] += 1
        elif status == ExecutionStatus.failed:
            entry["failedExecutions"] += 1
    for pref in preferences:
        stats.setdefault(pref.user_id, _empty_stats())["firecrawlStatus"] = pref.firecrawl_key_status

    return users, stats, len(scout_owners), len(executions)


@router.get("")
def admin_stats(
    admin: User = Depends(require_admin),
    services: Services = Depends(get_services),
):
    with services.session_factory() as session:
        users, stats, total_scouts, total_executions = _get_stats(session)

    return {
        "users": [
            {
                "id": u.id,
                "email": u.email,
                "createdAt": u.created_at.isoformat(),
                "lastSignIn": u.last_sign_in_at.isoformat() if u.last_sign_in_at else None,
                **stats.get(u.id, _empty_stats()),
            }
            for u in users
        ],
        "totalUsers": len(users),
        "totalScouts": total_scouts,
        "totalExecutions": total_executions,
        "fetchedAt": datetime.now(timezone.utc).isoformat(),
    }


def delete_user_cascade(session, user_id: str) -> None:
    """Remove a user and every row they own, children first."""
    scout_ids = select(Scout.id).where(Scout.user_id == user_id)
    execution_ids = select(ScoutExecution.id).where(ScoutExecution.scout_id.in_(scout_ids))
    session.execute(delete(ScoutExecutionStep).where(ScoutExecutionStep.execution_id.in_(execution_ids)))
    session.execute(delete(ScoutExecution).where(ScoutExecution.scout_id.in_(scout_ids)))
    session.execute(delete(FirecrawlUsageLog).where(FirecrawlUsageLog.user_id == user_id))
    session.execute(delete(Scout).where(Scout.user_id == user_id))
    session.execute(delete(UserPreferences).where(UserPreferences.user_id == user_id))
    session.execute(delete(User).where(User.id == user_id))


@router.delete("")
def admin_delete_user(
    body: Optional[DeleteUserRequest] = None,
    admin: User = Depends(require_admin),
    services: Services = Depends(get_services),
):
    user_id = body.userId if body else None
    if not user_id:
        raise BadRequest("userId is required")
    if user_id == admin.id:
        raise BadRequest("Cannot delete your own account")

    logger.info("[admin] Deleting user %s...", user_id)
    with services.session_factory() as session:
        target = session.get(User, user_id)
        email = (target.email if target else None) or "unknown"
        delete_user_cascade(session, user_id)
        session.commit()

    logger.info("[admin] Successfully deleted user %s (%s)", email, user_id)
    return {
        "success": True,
        "message": f"User {email} has been deleted",
        "deletedUserId": user_id,
    }
