"""Per-run retry and stabilization budgets.

Both are created fresh for every convergence run and never shared.
"""

import math

from pydantic import BaseModel, Field


class RetryBudget(BaseModel):
    """How often, and how far apart, a transient failure is retried."""

    attempts: int = Field(ge=0, default=10)
    delay_seconds: float = Field(ge=0, default=10)

    def spend(self) -> bool:
        """Use up one attempt. Returns False once the budget is exhausted."""
        self.attempts -= 1
        return self.attempts >= 0


class StabilizationBudget(BaseModel):
    """
    Quiet period the runtime must stay idle for before it is trusted.

    Each consecutive idle poll consumes ``interval`` seconds; any instability
    resets the countdown to ``ceiling``.
    """

    ceiling: float = Field(ge=0)
    interval: float = Field(gt=0)
    remaining: float = 0

    @classmethod
    def start(cls, ceiling: float, interval: float) -> "StabilizationBudget":
        return cls(ceiling=ceiling, interval=interval, remaining=ceiling)

    @property
    def settled(self) -> bool:
        return self.remaining <= 0

    @property
    def polls_required(self) -> int:
        """Consecutive idle polls needed from a full budget."""
        return max(1, math.ceil(self.ceiling / self.interval))

    def reset(self) -> None:
        self.remaining = self.ceiling

    def consume(self) -> None:
        self.remaining -= self.interval
