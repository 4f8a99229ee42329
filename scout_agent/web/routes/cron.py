"""Trusted scheduler entry point: runs one scout to completion."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from scout_agent.errors import BadRequest
from scout_agent.services import Services
from scout_agent.web.deps import get_services

logger = logging.getLogger(__name__)

router = APIRouter()


class CronRequest(BaseModel):
    scoutId: Optional[str] = None


@router.api_route("/scout-cron", methods=["GET", "POST"])
def scout_cron(
    scoutId: Optional[str] = None,
    body: Optional[CronRequest] = None,
    services: Services = Depends(get_services),
):
    scout_id = scoutId or (body.scoutId if body else None)
    if not scout_id:
        raise BadRequest(
            "scoutId is required. This function executes individual scouts dispatched by the scheduler."
        )

    scout, execution = services.dispatcher.run_scheduled(scout_id)
    logger.info("scout-cron: scout %s finished with status %s", scout.id, execution.status.value)
    return {
        "success": True,
        "scoutId": scout.id,
        "title": scout.title,
    }
