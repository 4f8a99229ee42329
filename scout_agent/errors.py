"""Exception taxonomy for the scout execution control plane.

Each error carries the HTTP status the web layer maps it to, so routes can
translate any ``ScoutAgentError`` with a single handler.
"""


class ScoutAgentError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class ConfigurationError(ScoutAgentError):
    """A required environment value is missing. Fatal, never retried."""


class Unauthenticated(ScoutAgentError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class Forbidden(ScoutAgentError):
    status_code = 403

    def __init__(self, message: str = "Scout not found or unauthorized"):
        super().__init__(message)


class ScoutNotFound(ScoutAgentError):
    status_code = 404

    def __init__(self, scout_id: str):
        self.scout_id = scout_id
        super().__init__(f"Scout {scout_id} not found in database")


class NotRunnable(ScoutAgentError):
    """Scout is inactive or its configuration is incomplete."""

    status_code = 422

    def __init__(self, scout_id: str, reason: str):
        self.scout_id = scout_id
        self.reason = reason
        super().__init__(f"Scout {scout_id} {reason}")


class RateLimited(ScoutAgentError):
    """Carries either ``cooldown_remaining`` (seconds) or the daily cap numbers."""

    status_code = 429

    def __init__(
        self,
        message: str,
        cooldown_remaining: int | None = None,
        daily_limit: int | None = None,
        current_count: int | None = None,
    ):
        self.cooldown_remaining = cooldown_remaining
        self.daily_limit = daily_limit
        self.current_count = current_count
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.cooldown_remaining is not None:
            body["cooldownRemaining"] = self.cooldown_remaining
        if self.daily_limit is not None:
            body["dailyLimit"] = self.daily_limit
            body["currentCount"] = self.current_count
        return body


class DispatchError(ScoutAgentError):
    """The orchestration layer did not accept the hand-off."""


class ExecutionError(ScoutAgentError):
    """A state transition of an execution could not be made."""


class ExecutionAlreadyRunning(ExecutionError):
    status_code = 409

    def __init__(self, scout_id: str):
        self.scout_id = scout_id
        super().__init__(f"Scout {scout_id} already has a running execution")


class CredentialRejected(ScoutAgentError):
    """The scrape/search provider refused the API key (401/403)."""

    status_code = 502


class BadRequest(ScoutAgentError):
    status_code = 400
