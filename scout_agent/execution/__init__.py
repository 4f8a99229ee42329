from scout_agent.execution.credentials import CredentialResolver, FirecrawlKeyResult
from scout_agent.execution.eligibility import is_runnable, should_run
from scout_agent.execution.rate_limiter import RateLimiter
from scout_agent.execution.results import Result, SoftResult
from scout_agent.execution.retry import retry_db_operation
from scout_agent.execution.steps import StepRecorder, StepTracker, effective_status, is_stuck

__all__ = [
    "CredentialResolver",
    "FirecrawlKeyResult",
    "RateLimiter",
    "Result",
    "SoftResult",
    "StepRecorder",
    "StepTracker",
    "effective_status",
    "is_runnable",
    "is_stuck",
    "retry_db_operation",
    "should_run",
]
