"""Bounded retry for best-effort database writes.

Exhausting the attempts never raises: callers treat a failed ``SoftResult`` as
"proceed without this side effect".
"""

import logging
import time
from typing import Callable, TypeVar

from scout_agent.execution.results import SoftResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
BACKOFF_STEP_SECONDS = 0.5


def retry_db_operation(
    operation: Callable[[], T],
    operation_name: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    sleep: Callable[[float], None] = time.sleep,
) -> SoftResult[T]:
    """Run ``operation`` up to ``max_attempts`` times, sleeping attempt*500ms between tries."""
    last_error = ""
    for attempt in range(1, max_attempts + 1):
        try:
            result = operation()
        except Exception as e:
            last_error = str(e) or e.__class__.__name__
            logger.warning(
                "%s failed (attempt %d/%d): %s",
                operation_name, attempt, max_attempts, last_error,
            )
            if attempt < max_attempts:
                sleep(attempt * BACKOFF_STEP_SECONDS)
            continue

        if attempt > 1:
            logger.info("%s succeeded on attempt %d", operation_name, attempt)
        return SoftResult.success(result)

    logger.error(
        "%s failed after %d attempts - continuing execution", operation_name, max_attempts
    )
    return SoftResult.skipped(last_error)
