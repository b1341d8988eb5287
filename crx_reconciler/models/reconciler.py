"""Convergence request, plan actions and result."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from crx_reconciler.models.budgets import RetryBudget, StabilizationBudget
from crx_reconciler.models.package import (
    DesiredState,
    Observation,
    ObservedState,
    PackageIdentity,
)


class Action(str, Enum):
    UPLOAD = "upload"
    UPLOAD_AND_INSTALL = "upload_and_install"
    INSTALL = "install"
    UNINSTALL = "uninstall"
    DELETE = "delete"

    @property
    def affects_installer(self) -> bool:
        """Whether the runtime processes this action asynchronously."""
        return self is not Action.DELETE


class PackageQuery(BaseModel):
    """A package plus the credentials and tuning needed to read its state."""

    group: str
    name: str
    version: str
    username: str = "admin"
    password: str = Field(default="admin", repr=False)
    timeout: float = Field(gt=0, default=60)
    retries: int = Field(ge=0, default=10)
    retry_timeout: float = Field(ge=1, default=10)
    stabilization_time: float = Field(ge=0, default=30)

    @property
    def identity(self) -> PackageIdentity:
        return PackageIdentity(group=self.group, name=self.name, version=self.version)

    def retry_budget(self) -> RetryBudget:
        return RetryBudget(attempts=self.retries, delay_seconds=self.retry_timeout)

    def stabilization_budget(self) -> StabilizationBudget:
        return StabilizationBudget.start(self.stabilization_time, self.retry_timeout)


class ConvergeRequest(PackageQuery):
    """Everything one convergence run needs, supplied by the caller."""

    ensure: DesiredState
    source: Optional[str] = None            # Artifact path, only needed for upload


class ConvergeResult(BaseModel):
    """Outcome of one convergence run, as reported back to the host tool."""

    observation: Observation
    desired: DesiredState
    actions: List[Action] = []

    @computed_field
    @property
    def ensure(self) -> str:
        state = self.observation.state
        if self.desired == DesiredState.PURGED and state == ObservedState.ABSENT:
            return DesiredState.PURGED.value
        return state.value

    @computed_field
    @property
    def changed(self) -> bool:
        return len(self.actions) > 0

    @computed_field
    @property
    def converged(self) -> bool:
        return self.ensure == self.desired.value or (
            self.desired == DesiredState.PRESENT
            and self.observation.state == ObservedState.INSTALLED
        )
