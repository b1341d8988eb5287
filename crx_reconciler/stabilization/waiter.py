"""
Stabilization Waiter — blocks until the runtime is quiescent.

Two subsystems must both be idle before a registry read is trusted:
  1. the Sling OSGi installer queue (no active work, no active resources)
  2. the OSGi bundle framework (no resolved-only or installed-only bundles)

Startup flaps, so one idle reading is not enough. Each poll cycle where both
are idle consumes ``interval`` seconds of the stabilization budget; anything
else resets it to the ceiling. The waiter returns once the budget is spent.

Poll cycle outcomes:
  endpoint unavailable / malformed payload -> reset, retried by the RetryExecutor
  installer active / bundles not active    -> reset, retried (InstabilityError)
  idle, budget remaining                   -> consume, sleep ``interval``, poll again
  idle, budget spent                       -> stable

Only the retried outcomes spend the retry budget, which starts over after
every idle poll.
"""

import logging
from typing import Optional

from crx_reconciler.config import DEFAULT_INSTALLER_BEAN
from crx_reconciler.errors import InstabilityError, MalformedResponseError, TransientError
from crx_reconciler.execution.retry import RetryExecutor
from crx_reconciler.models.budgets import RetryBudget, StabilizationBudget
from crx_reconciler.stabilization.probe import StatusProbe

logger = logging.getLogger(__name__)

# Indices into the bundles.json "s" summary: [total, active, fragment, resolved, installed]
RESOLVED_INDEX = 3
INSTALLED_INDEX = 4


class StabilizationWaiter:
    """Polls installer and bundle status until the runtime has settled."""

    def __init__(
        self,
        probe: StatusProbe,
        executor: Optional[RetryExecutor] = None,
        installer_bean: str = DEFAULT_INSTALLER_BEAN,
    ):
        self.probe = probe
        self.executor = executor or RetryExecutor()
        self.installer_bean = installer_bean

    def await_stable(self, budget: StabilizationBudget, retry: RetryBudget) -> int:
        """
        Block until the runtime has been idle for the whole budget.

        Returns the number of poll cycles it took. Idle polls only count down
        ``budget``; ``retry`` bounds the unstable or unreadable polls between
        two idle ones, and the last transient error propagates unchanged once
        it is exhausted.
        """
        polls = 0

        def poll() -> None:
            nonlocal polls
            polls += 1
            self._poll_cycle(budget)

        logger.debug(
            "Awaiting stabilization: %s seconds at %s second intervals (%d idle poll(s))",
            budget.ceiling, budget.interval, budget.polls_required,
        )
        while True:
            # Every call starts from the full retry budget
            self.executor.run_with(poll, retry, description="Stabilization poll")
            budget.consume()
            if budget.settled:
                break
            logger.debug(
                "Runtime idle, %s seconds of stabilization time remaining", budget.remaining
            )
            self.executor.sleep(budget.interval)

        logger.debug("Runtime stable after %d poll(s)", polls)
        return polls

    def _poll_cycle(self, budget: StabilizationBudget) -> None:
        try:
            self.check_installer_idle()
            self.check_bundles_active()
        except TransientError:
            budget.reset()
            raise

    def check_installer_idle(self) -> None:
        """Raise unless the OSGi installer reports no active work."""
        data = self.probe.installer_status()
        logger.debug("Installer status: %s", data)

        status = None
        if isinstance(data, dict) and isinstance(data.get("value"), dict):
            status = data["value"].get(self.installer_bean)
        if not isinstance(status, dict):
            raise MalformedResponseError("Failed to fetch OSGi installer status")

        active = status.get("Active")
        active_count = status.get("ActiveResourceCount")
        if active is True or active_count != 0:
            raise InstabilityError(
                f"OSGi installer still active, ActiveResourceCount: {active_count}",
                {"active": active, "active_resource_count": active_count},
            )

    def check_bundles_active(self) -> None:
        """Raise unless every OSGi bundle is active."""
        data = self.probe.bundle_status()

        summary = data.get("s") if isinstance(data, dict) else None
        if not isinstance(summary, list) or len(summary) <= INSTALLED_INDEX:
            raise MalformedResponseError("Failed to fetch OSGi bundle status")
        logger.debug("Bundle status: %s", summary)

        resolved = summary[RESOLVED_INDEX]
        installed = summary[INSTALLED_INDEX]
        if resolved != 0 or installed != 0:
            raise InstabilityError(
                f"OSGi bundles not all active {resolved} (req: 0) {installed} (req: 0)",
                {"resolved": resolved, "installed": installed},
            )
