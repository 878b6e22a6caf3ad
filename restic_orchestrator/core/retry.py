"""
Retry loop shared by the backup and maintenance phases.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from restic_orchestrator.core.models import AggregateResult

logger = logging.getLogger(__name__)


@dataclass
class RetryOutcome:
    """Result of a phase after all of its attempts"""
    success: bool
    attempts: int
    failed_attempts: int


def run_with_retry(
    attempt_fn: Callable[[int], AggregateResult],
    max_attempts: int,
    cooldown_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "phase"
) -> RetryOutcome:
    """
    Run ``attempt_fn`` until it succeeds or ``max_attempts`` is exhausted.

    Args:
        attempt_fn: Called with the 1-based attempt number
        max_attempts: Upper bound on calls (values below 1 count as 1)
        cooldown_seconds: Blocking wait between a failed attempt and the next one
        sleep: Sleep function
        label: Name used in log lines

    Returns:
        RetryOutcome with the number of attempts made and how many failed
    """
    max_attempts = max(1, max_attempts)
    failed = 0

    for attempt_number in range(1, max_attempts + 1):
        logger.info(f"Starting {label} attempt {attempt_number}/{max_attempts}")
        result = attempt_fn(attempt_number)

        if result.success:
            logger.info(f"{label.capitalize()} attempt {attempt_number} succeeded")
            return RetryOutcome(success=True, attempts=attempt_number, failed_attempts=failed)

        failed += 1
        logger.error(
            f"{label.capitalize()} attempt {attempt_number} failed with {result.error_count} error(s)"
        )

        if not result.retryable:
            logger.error(f"{label.capitalize()} aborted for this run")
            return RetryOutcome(success=False, attempts=attempt_number, failed_attempts=failed)

        if attempt_number < max_attempts:
            logger.info(f"Waiting {cooldown_seconds:.0f}s before retrying {label}")
            sleep(cooldown_seconds)

    return RetryOutcome(success=False, attempts=max_attempts, failed_attempts=failed)
