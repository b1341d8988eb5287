"""crx_reconciler data models."""

from crx_reconciler.models.budgets import RetryBudget, StabilizationBudget
from crx_reconciler.models.package import (
    DesiredState,
    Observation,
    ObservedState,
    PackageIdentity,
    PackageRecord,
)
from crx_reconciler.models.reconciler import (
    Action,
    ConvergeRequest,
    ConvergeResult,
    PackageQuery,
)
from crx_reconciler.models.responses import ActionVerdict, ExecResponse, XmlEnvelope

__all__ = [
    "Action",
    "ActionVerdict",
    "ConvergeRequest",
    "ConvergeResult",
    "DesiredState",
    "ExecResponse",
    "Observation",
    "ObservedState",
    "PackageIdentity",
    "PackageQuery",
    "PackageRecord",
    "RetryBudget",
    "StabilizationBudget",
    "XmlEnvelope",
]
