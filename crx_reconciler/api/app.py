"""
crx_reconciler API — FastAPI endpoints.

Lets an automation agent drive package convergence over HTTP:
- Converge a package to its desired state
- Observe a package's current state
- Preview the action plan for a state pair
- Inspect connection settings
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from crx_reconciler.config import CrxSettings, get_settings
from crx_reconciler.errors import (
    ActionFailedError,
    AuthenticationError,
    ContractViolationError,
    CrxReconcilerError,
    RequestRejectedError,
    TransientError,
)
from crx_reconciler.logging_config import setup_logging
from crx_reconciler.models.package import DesiredState, Observation, ObservedState
from crx_reconciler.models.reconciler import (
    Action,
    ConvergeRequest,
    ConvergeResult,
    PackageQuery,
)
from crx_reconciler.reconciler.loop import Reconciler, plan


# --- Request/Response Models ---

class PlanRequest(BaseModel):
    desired: str
    observed: str


class PlanResponse(BaseModel):
    desired: DesiredState
    observed: ObservedState
    actions: List[Action]


def _status_for(error: CrxReconcilerError) -> int:
    if isinstance(error, ContractViolationError):
        return 400
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, (ActionFailedError, RequestRejectedError)):
        return 409
    if isinstance(error, TransientError):
        return 503
    return 500


# --- Application Factory ---

def create_app(
    reconciler: Optional[Reconciler] = None,
    settings: Optional[CrxSettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = settings or (reconciler.settings if reconciler else get_settings())
    setup_logging(config.log_level)

    app = FastAPI(
        title="crx_reconciler API",
        description="Converges CRX content packages to a declared state",
        version="0.1.0",
    )

    rc = reconciler or Reconciler(settings=config)
    app.state.reconciler = rc
    app.state.settings = config

    # === PACKAGES ===

    @app.post("/packages/converge", response_model=ConvergeResult)
    def converge_package(req: ConvergeRequest):
        """Converge a package to its desired state."""
        try:
            return rc.converge(req)
        except CrxReconcilerError as e:
            raise HTTPException(_status_for(e), e.message)

    @app.post("/packages/observe", response_model=Observation)
    def observe_package(req: PackageQuery):
        """Current lifecycle state of a package, read once the runtime is stable."""
        try:
            return rc.observe(req)
        except CrxReconcilerError as e:
            raise HTTPException(_status_for(e), e.message)

    @app.post("/packages/plan", response_model=PlanResponse)
    def plan_package(req: PlanRequest):
        """Actions a convergence run would take, without touching the runtime."""
        try:
            actions = plan(req.desired, req.observed)
        except ContractViolationError as e:
            raise HTTPException(400, e.message)
        return PlanResponse(
            desired=DesiredState(req.desired),
            observed=ObservedState(req.observed),
            actions=list(actions),
        )

    # === SETTINGS ===

    @app.get("/settings")
    def get_connection_settings():
        """Current connection settings."""
        return config.model_dump()

    return app


# Default application instance
app = create_app()
