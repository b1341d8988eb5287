"""
Package Locator — observes a package's lifecycle state in the registry.

The registry query returns every version of the package; the first record
whose version equals the requested one decides the state:
  no match                     -> absent
  match, never unpacked        -> present
  match, lastUnpacked set      -> installed
"""

import logging
from typing import Iterable, Optional

from crx_reconciler.execution.client import PackageAPI
from crx_reconciler.execution.retry import RetryExecutor
from crx_reconciler.models.budgets import RetryBudget
from crx_reconciler.models.package import (
    Observation,
    ObservedState,
    PackageIdentity,
    PackageRecord,
)

logger = logging.getLogger(__name__)


def find_version(records: Iterable[PackageRecord], version: str) -> Optional[PackageRecord]:
    """First record carrying exactly ``version``."""
    return next((r for r in records if r.version == version), None)


class PackageLocator:
    """Maps registry records onto an Observation."""

    def __init__(self, api: PackageAPI, executor: Optional[RetryExecutor] = None):
        self.api = api
        self.executor = executor or RetryExecutor()

    def find(self, identity: PackageIdentity, retry: RetryBudget) -> Observation:
        logger.debug("Starting package lookup for %s", identity)
        records = self.executor.run_with(
            lambda: self.api.list(path=identity.lookup_path, include_versions=True),
            retry,
            description=f"Package lookup for {identity}",
        )

        found = find_version(records, identity.version)
        logger.debug("Found package: %s", found)
        if found is None:
            return Observation(identity=identity, state=ObservedState.ABSENT)

        state = ObservedState.INSTALLED if found.unpacked else ObservedState.PRESENT
        return Observation(identity=identity, state=state, version=found.version)
