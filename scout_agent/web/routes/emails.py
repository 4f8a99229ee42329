import logging
import math
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import select

from scout_agent.errors import RateLimited
from scout_agent.models import User, UserPreferences
from scout_agent.services import Services
from scout_agent.web.deps import get_services, require_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/send-test-email")
def send_test_email(
    user: User = Depends(require_user),
    services: Services = Depends(get_services),
):
    """Send a test notification to the caller, at most once per cooldown window."""
    cooldown = timedelta(seconds=services.config.test_email_cooldown_seconds)
    now = datetime.utcnow()

    with services.session_factory() as session:
        preferences = session.exec(
            select(UserPreferences).where(UserPreferences.user_id == user.id)
        ).first()

    if preferences and preferences.last_test_email_at:
        elapsed = now - preferences.last_test_email_at
        if elapsed < cooldown:
            remaining = math.ceil((cooldown - elapsed).total_seconds())
            raise RateLimited(
                f"Please wait {remaining} seconds before sending another test email",
                cooldown_remaining=remaining,
            )

    if not services.config.resend_api_key:
        return JSONResponse({"error": "RESEND_API_KEY not configured"}, status_code=400)
    if not user.email:
        return JSONResponse(
            {"error": "Your account doesn't have an email address configured."}, status_code=400
        )

    sent = services.notifier.send_test_email(user)
    if not sent.ok:
        return JSONResponse({"error": sent.error}, status_code=500)

    with services.session_factory() as session:
        stored = session.exec(
            select(UserPreferences).where(UserPreferences.user_id == user.id)
        ).first() or UserPreferences(user_id=user.id)
        stored.last_test_email_at = now
        session.add(stored)
        session.commit()

    logger.info("Test email sent to %s (id=%s)", user.email, sent.value)
    return {
        "success": True,
        "message": f"Test email sent to {user.email}",
        "emailId": sent.value,
    }
