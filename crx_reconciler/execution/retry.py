"""
Retry Executor — bounded retry for every network interaction.

Behavioral Contract:
- Retries only errors whose ``transient`` flag is set
- Sleeps a fixed delay (blocking) between attempts
- With ``attempts = A`` an always-failing operation runs ``A + 1`` times
- On exhaustion the last error propagates unchanged, never wrapped
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from crx_reconciler.models.budgets import RetryBudget

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Whether an error may be retried."""
    return bool(getattr(error, "transient", False))


class RetryExecutor:
    """Runs a fallible operation until it succeeds or the budget runs out."""

    def __init__(self, sleep: Optional[Callable[[float], None]] = None):
        self.sleep = sleep or time.sleep

    def run(
        self,
        operation: Callable[[], T],
        attempts: int,
        delay_seconds: float,
        description: str = "operation",
    ) -> T:
        """Run ``operation``, retrying transient failures."""
        budget = RetryBudget(attempts=attempts, delay_seconds=delay_seconds)
        while True:
            try:
                return operation()
            except Exception as e:
                if not is_transient(e):
                    raise
                logger.info("%s failed: %s: %s", description, type(e).__name__, e)
                if not budget.spend():
                    logger.debug("%s: retries exhausted", description)
                    raise
                logger.debug(
                    "Waiting %s seconds before retrying %s; remaining retries: %d",
                    budget.delay_seconds, description, budget.attempts,
                )
                self.sleep(budget.delay_seconds)

    def run_with(
        self,
        operation: Callable[[], T],
        budget: RetryBudget,
        description: str = "operation",
    ) -> T:
        """Same as ``run``, taking attempts and delay from a budget."""
        return self.run(operation, budget.attempts, budget.delay_seconds, description)
