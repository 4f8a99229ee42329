"""Credential usage logging and PostHog analytics.

Everything here is fire-and-forget: failures are logged and swallowed so they
are invisible to the execution's control flow.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
from sqlmodel import Session

from scout_agent.config import Settings, settings as default_settings
from scout_agent.database import get_session
from scout_agent.execution.credentials import FirecrawlKeyResult
from scout_agent.execution.results import SoftResult
from scout_agent.execution.retry import retry_db_operation
from scout_agent.models import FirecrawlUsageLog, Scout, TriggerSource

logger = logging.getLogger(__name__)


class UsageLogger:
    def __init__(
        self,
        config: Settings = default_settings,
        session_factory: Callable[[], Session] = get_session,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config
        self._session_factory = session_factory
        self._sleep = sleep

    # --- Firecrawl usage ---

    def log_firecrawl_usage(
        self,
        scout: Scout,
        execution_id: str,
        credential: FirecrawlKeyResult,
        api_calls_count: int = 1,
    ) -> SoftResult[bool]:
        def _insert() -> bool:
            with self._session_factory() as session:
                session.add(FirecrawlUsageLog(
                    user_id=scout.user_id,
                    scout_id=scout.id,
                    execution_id=execution_id,
                    used_fallback=credential.used_fallback,
                    fallback_reason=credential.fallback_reason,
                    api_calls_count=api_calls_count or 1,
                ))
                session.commit()
            return True

        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        return retry_db_operation(
            _insert, f"logFirecrawlUsage (execution: {execution_id})", **kwargs
        )

    # --- PostHog ---

    def capture(self, event: str, distinct_id: str, properties: Optional[dict[str, Any]] = None) -> SoftResult[bool]:
        if not self.config.posthog_api_key:
            logger.debug("[PostHog] API key not configured, skipping event: %s", event)
            return SoftResult.skipped("posthog_not_configured")

        body = {
            "api_key": self.config.posthog_api_key,
            "event": event,
            "distinct_id": distinct_id,
            "properties": {
                **(properties or {}),
                "$lib": "scout-agent",
                "source": "scout-cron",
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            resp = httpx.post(f"{self.config.posthog_host}/capture/", json=body, timeout=10.0)
        except Exception as e:
            logger.error("[PostHog] Error capturing event %s: %s", event, e)
            return SoftResult.skipped(str(e))

        if resp.status_code >= 300:
            logger.error("[PostHog] Failed to capture event %s: %d", event, resp.status_code)
            return SoftResult.skipped(f"status {resp.status_code}")
        return SoftResult.success(True)

    def _scout_properties(self, scout: Scout, execution_id: str) -> dict[str, Any]:
        return {
            "scout_id": scout.id,
            "execution_id": execution_id,
            "scout_title": scout.title,
        }

    def track_execution_started(
        self, scout: Scout, execution_id: str, trigger_source: TriggerSource
    ) -> SoftResult[bool]:
        return self.capture("scout_execution_started", scout.user_id, {
            **self._scout_properties(scout, execution_id),
            "trigger_source": TriggerSource(trigger_source).value,
        })

    def track_execution_completed(
        self,
        scout: Scout,
        execution_id: str,
        *,
        duration_ms: int,
        steps_count: int,
        results_found: bool,
        is_duplicate: bool,
        api_calls_count: int,
    ) -> SoftResult[bool]:
        return self.capture("scout_execution_completed", scout.user_id, {
            **self._scout_properties(scout, execution_id),
            "duration_ms": duration_ms,
            "steps_count": steps_count,
            "results_found": results_found,
            "is_duplicate": is_duplicate,
            "api_calls_count": api_calls_count,
        })

    def track_execution_failed(
        self, scout: Scout, execution_id: str, error_message: str, duration_ms: int
    ) -> SoftResult[bool]:
        return self.capture("scout_execution_failed", scout.user_id, {
            **self._scout_properties(scout, execution_id),
            "error_message": error_message,
            "duration_ms": duration_ms,
        })

    def track_duplicate_detected(
        self, scout: Scout, execution_id: str, similarity_score: float
    ) -> SoftResult[bool]:
        return self.capture("scout_duplicate_detected", scout.user_id, {
            **self._scout_properties(scout, execution_id),
            "similarity_score": round(similarity_score, 4),
        })

    def track_email_notification(
        self, scout: Scout, execution_id: str, success: bool, error_message: Optional[str] = None
    ) -> SoftResult[bool]:
        return self.capture("scout_email_notification_sent", scout.user_id, {
            **self._scout_properties(scout, execution_id),
            "success": success,
            "error_message": error_message,
        })
