import logging

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import select

from scout_agent.agent.firecrawl import FirecrawlClient
from scout_agent.errors import CredentialRejected
from scout_agent.models import FirecrawlKeyStatus, User, UserPreferences
from scout_agent.services import Services
from scout_agent.web.deps import get_services, require_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _no_credits(status: str, error: str | None = None) -> dict:
    data = {"remainingCredits": None, "planCredits": None, "status": status}
    if error:
        data["error"] = error
    return {"success": True, "data": data}


@router.get("/credits")
def firecrawl_credits(
    user: User = Depends(require_user),
    services: Services = Depends(get_services),
):
    """Remaining credits on the user's own Firecrawl key."""
    with services.session_factory() as session:
        preferences = session.exec(
            select(UserPreferences).where(UserPreferences.user_id == user.id)
        ).first()

    api_key = preferences and (preferences.firecrawl_custom_api_key or preferences.firecrawl_api_key)
    if not api_key:
        status = (preferences and preferences.firecrawl_key_status) or FirecrawlKeyStatus.pending.value
        return _no_credits(status)

    client = FirecrawlClient(api_key, base_url=services.config.firecrawl_api_url, timeout=15.0)
    try:
        usage = client.credit_usage()
    except CredentialRejected:
        return _no_credits(FirecrawlKeyStatus.invalid.value, "API key is invalid")
    except httpx.HTTPStatusError as e:
        logger.error("[Firecrawl Credits] API error: %d - %s", e.response.status_code, e.response.text[:200])
        return JSONResponse(
            {"error": f"Failed to fetch credits: {e.response.status_code}"}, status_code=500
        )

    return {
        "success": True,
        "data": {
            "remainingCredits": usage.get("remaining_credits"),
            "planCredits": usage.get("plan_credits"),
            "billingPeriodStart": usage.get("billing_period_start"),
            "billingPeriodEnd": usage.get("billing_period_end"),
            "status": preferences.firecrawl_key_status,
        },
    }
