import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from scout_agent.errors import BadRequest, Unauthenticated
from scout_agent.models import User
from scout_agent.services import Services
from scout_agent.web.deps import current_user, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


class ExecuteRequest(BaseModel):
    scoutId: Optional[str] = None


@router.post("/execute")
def execute_scout(
    body: Optional[ExecuteRequest] = None,
    user: Optional[User] = Depends(current_user),
    services: Services = Depends(get_services),
):
    """Manual "run now": gate the request and hand the run off without waiting."""
    if user is None:
        raise Unauthenticated()

    scout_id = body.scoutId if body else None
    logger.info("[scout/execute] Received scoutId: %s", scout_id)
    if not scout_id:
        raise BadRequest("scoutId is required")

    services.dispatcher.dispatch_manual(user, scout_id)
    logger.info("[scout/execute] Scout execution triggered successfully")
    return {
        "success": True,
        "message": "Scout execution triggered",
        "scoutId": scout_id,
    }
