"""
Reconciler — converges one package to its desired lifecycle state.

States of a convergence run:
  AWAIT_STABLE → OBSERVE → DISPATCH → (no-op | ACT → SETTLE → AWAIT_STABLE → OBSERVE)

Exactly one dispatch-table entry applies per (desired, observed) pair. A
negative action verdict aborts the run; the next run re-observes and picks
up from whatever state the runtime is in.
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

from crx_reconciler.config import CrxSettings, get_settings
from crx_reconciler.errors import ContractViolationError
from crx_reconciler.execution.client import CrxPackageClient, PackageAPI
from crx_reconciler.execution.interpreter import PackageResponse, ResponseInterpreter
from crx_reconciler.execution.retry import RetryExecutor
from crx_reconciler.models.package import DesiredState, Observation, ObservedState
from crx_reconciler.models.reconciler import (
    Action,
    ConvergeRequest,
    ConvergeResult,
    PackageQuery,
)
from crx_reconciler.stabilization.probe import RuntimeProbe, StatusProbe
from crx_reconciler.stabilization.waiter import StabilizationWaiter
from crx_reconciler.world_model.locator import PackageLocator

logger = logging.getLogger(__name__)

ApiFactory = Callable[[PackageQuery], PackageAPI]
ProbeFactory = Callable[[PackageQuery], StatusProbe]

DISPATCH_TABLE: Dict[Tuple[DesiredState, ObservedState], Tuple[Action, ...]] = {
    (DesiredState.PRESENT, ObservedState.ABSENT): (Action.UPLOAD,),
    (DesiredState.PRESENT, ObservedState.PRESENT): (),
    (DesiredState.PRESENT, ObservedState.INSTALLED): (),
    (DesiredState.INSTALLED, ObservedState.ABSENT): (Action.UPLOAD_AND_INSTALL,),
    (DesiredState.INSTALLED, ObservedState.PRESENT): (Action.INSTALL,),
    (DesiredState.INSTALLED, ObservedState.INSTALLED): (),
    (DesiredState.ABSENT, ObservedState.ABSENT): (),
    (DesiredState.ABSENT, ObservedState.PRESENT): (Action.DELETE,),
    (DesiredState.ABSENT, ObservedState.INSTALLED): (Action.UNINSTALL, Action.DELETE),
    (DesiredState.PURGED, ObservedState.ABSENT): (),
    (DesiredState.PURGED, ObservedState.PRESENT): (Action.DELETE,),
    (DesiredState.PURGED, ObservedState.INSTALLED): (Action.UNINSTALL, Action.DELETE),
}


def plan(desired: DesiredState, observed: ObservedState) -> Tuple[Action, ...]:
    """The actions that take a package from ``observed`` to ``desired``."""
    try:
        return DISPATCH_TABLE[(DesiredState(desired), ObservedState(observed))]
    except ValueError:
        raise ContractViolationError(
            f"Unknown state transition: desired={desired!r}, observed={observed!r}"
        )


class _Session(NamedTuple):
    """Collaborators owned by a single convergence run."""

    api: PackageAPI
    waiter: StabilizationWaiter
    locator: PackageLocator


class Reconciler:
    """
    Drives a package to its desired state.

    Client handles are built per run through the factories and closed when
    the run ends; nothing is cached between runs.
    """

    def __init__(
        self,
        settings: Optional[CrxSettings] = None,
        api_factory: Optional[ApiFactory] = None,
        probe_factory: Optional[ProbeFactory] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.settings = settings or get_settings()
        self._api_factory = api_factory or self._default_api
        self._probe_factory = probe_factory or self._default_probe
        self._sleep = sleep or time.sleep
        self.executor = RetryExecutor(sleep=self._sleep)
        self.interpreter = ResponseInterpreter()

    def converge(self, request: ConvergeRequest) -> ConvergeResult:
        """Run one convergence pass and return the refreshed observation."""
        desired = self._validate_desired(request.ensure)
        identity = request.identity

        with self._session(request) as session:
            observation = self._observe(session, request)
            actions = plan(desired, observation.state)
            if not actions:
                logger.debug("%s already %s, nothing to do", identity, observation.state.value)
                return ConvergeResult(observation=observation, desired=desired)

            logger.debug(
                "Converging %s from %s to %s: %s",
                identity, observation.state.value, desired.value,
                " -> ".join(a.value for a in actions),
            )
            for action in actions:
                self._perform(session, action, request)

            if any(a.affects_installer for a in actions):
                logger.debug(
                    "Sleeping %s seconds to wait for installation to kick in",
                    self.settings.settle_seconds,
                )
                self._sleep(self.settings.settle_seconds)

            observation = self._observe(session, request)
            return ConvergeResult(observation=observation, desired=desired, actions=list(actions))

    def observe(self, request: PackageQuery) -> Observation:
        """Await a stable runtime and report the package's current state."""
        with self._session(request) as session:
            return self._observe(session, request)

    # --- Internals ---

    def _validate_desired(self, desired: object) -> DesiredState:
        try:
            return DesiredState(desired)
        except ValueError:
            raise ContractViolationError(f"Unknown desired state: {desired!r}")

    def _observe(self, session: _Session, request: PackageQuery) -> Observation:
        session.waiter.await_stable(request.stabilization_budget(), request.retry_budget())
        return session.locator.find(request.identity, request.retry_budget())

    def _perform(self, session: _Session, action: Action, request: ConvergeRequest) -> None:
        identity = request.identity
        logger.debug("Starting %s for %s", action.value, identity)

        if action in (Action.UPLOAD, Action.UPLOAD_AND_INSTALL):
            install = action is Action.UPLOAD_AND_INSTALL
            operation = lambda: self._upload(session.api, request, install)
        else:
            operation = lambda: session.api.exec(
                action.value, identity.name, identity.group, identity.version
            )

        response = self.executor.run_with(
            operation,
            request.retry_budget(),
            description=f"Package {action.value} for {identity}",
        )
        self.interpreter.raise_on_failure(response)

    def _upload(self, api: PackageAPI, request: ConvergeRequest, install: bool) -> PackageResponse:
        if not request.source:
            raise ContractViolationError(
                f"Package {request.identity} must be uploaded but no source was given"
            )
        try:
            with open(request.source, "rb") as artifact:
                return api.upload(artifact, Path(request.source).name, install=install)
        except OSError as e:
            raise ContractViolationError(f"Cannot read package source {request.source}: {e}")

    @contextmanager
    def _session(self, request: PackageQuery) -> Iterator[_Session]:
        handles: List[object] = []
        try:
            api = self._api_factory(request)
            handles.append(api)
            probe = self._probe_factory(request)
            handles.append(probe)
            yield _Session(
                api=api,
                waiter=StabilizationWaiter(
                    probe, self.executor, installer_bean=self.settings.installer_bean
                ),
                locator=PackageLocator(api, self.executor),
            )
        finally:
            for handle in handles:
                close = getattr(handle, "close", None)
                if callable(close):
                    close()

    def _default_api(self, request: PackageQuery) -> PackageAPI:
        return CrxPackageClient(
            base_url=self.settings.base_url,
            username=request.username,
            password=request.password,
            timeout=request.timeout,
        )

    def _default_probe(self, request: PackageQuery) -> StatusProbe:
        return RuntimeProbe(
            jolokia_url=self.settings.jolokia_url,
            console_url=self.settings.base_url,
            username=request.username,
            password=request.password,
            timeout=request.timeout,
        )
