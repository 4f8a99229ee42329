"""Firecrawl credential resolution.

Only a key whose status is ``active`` is used directly; every other state
routes to the shared fallback key and the reason is reported for telemetry.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlmodel import Session, select

from scout_agent.database import get_session
from scout_agent.models import FirecrawlKeyStatus, UserPreferences

logger = logging.getLogger(__name__)

_REASON_BY_STATUS = {
    FirecrawlKeyStatus.pending.value: "key_pending",
    FirecrawlKeyStatus.failed.value: "key_creation_failed",
    FirecrawlKeyStatus.invalid.value: "key_invalid",
}


@dataclass(frozen=True)
class FirecrawlKeyResult:
    api_key: Optional[str]
    used_fallback: bool
    fallback_reason: Optional[str] = None


def fallback_reason_for(preferences: UserPreferences) -> str:
    """Explain why a stored preference record cannot supply a personal key."""
    if not (preferences.firecrawl_custom_api_key or preferences.firecrawl_api_key):
        return "no_api_key"
    status = preferences.firecrawl_key_status
    if status in _REASON_BY_STATUS:
        return _REASON_BY_STATUS[status]
    return f"status_{status or 'unknown'}"


class CredentialResolver:
    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def _load_preferences(self, user_id: str) -> Optional[UserPreferences]:
        with self._session_factory() as session:
            return session.exec(
                select(UserPreferences).where(UserPreferences.user_id == user_id)
            ).first()

    def resolve(self, user_id: str, fallback_key: str) -> FirecrawlKeyResult:
        """Return the user's active key, or the fallback key with a reason."""
        try:
            preferences = self._load_preferences(user_id)
        except Exception as e:
            logger.error("[Firecrawl] Error fetching key for user %s: %s", user_id, e)
            return FirecrawlKeyResult(fallback_key, True, f"error: {e}")

        if preferences is None:
            logger.info("[Firecrawl] No preferences found for user %s, using fallback", user_id)
            return FirecrawlKeyResult(fallback_key, True, "no_preferences_record")

        personal_key = preferences.firecrawl_custom_api_key or preferences.firecrawl_api_key
        if personal_key and preferences.firecrawl_key_status == FirecrawlKeyStatus.active.value:
            logger.info("[Firecrawl] Using personal API key for user %s", user_id)
            return FirecrawlKeyResult(personal_key, False)

        reason = fallback_reason_for(preferences)
        logger.info("[Firecrawl] Using fallback key for user %s (reason: %s)", user_id, reason)
        return FirecrawlKeyResult(fallback_key, True, reason)

    def mark_invalid(self, user_id: str, reason: str) -> bool:
        """Flag the user's key as invalid so later resolutions fall back.

        Recovery requires the user to provision a new key. Returns False if the
        write could not be made.
        """
        try:
            with self._session_factory() as session:
                preferences = session.exec(
                    select(UserPreferences).where(UserPreferences.user_id == user_id)
                ).first()
                if preferences is None:
                    return False
                preferences.firecrawl_key_status = FirecrawlKeyStatus.invalid.value
                preferences.firecrawl_key_error = reason
                session.add(preferences)
                session.commit()
        except Exception as e:
            logger.error("[Firecrawl] Failed to mark key invalid for user %s: %s", user_id, e)
            return False

        logger.warning("[Firecrawl] Marked user %s key as invalid: %s", user_id, reason)
        return True
