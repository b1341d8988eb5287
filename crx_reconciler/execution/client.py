"""
Package API — the CRX package manager REST interface.

The Reconciler only depends on the ``PackageAPI`` protocol; ``CrxPackageClient``
is the httpx implementation used in production. Transport failures are mapped
onto the error taxonomy here so the RetryExecutor can classify them:

  connection error / timeout / 5xx -> EndpointUnavailableError (transient)
  401 / 403                        -> AuthenticationError (fatal)
  other 4xx                        -> RequestRejectedError (fatal)
  body that is not the JSON we expect -> MalformedResponseError (transient)
"""

import logging
from contextlib import contextmanager
from typing import BinaryIO, Iterator, List, Optional, Protocol

import httpx
from pydantic import ValidationError

from crx_reconciler.errors import (
    AuthenticationError,
    ContractViolationError,
    EndpointUnavailableError,
    MalformedResponseError,
    RequestRejectedError,
)
from crx_reconciler.models.package import PackageIdentity, PackageRecord
from crx_reconciler.models.responses import ExecResponse, XmlEnvelope

logger = logging.getLogger(__name__)

EXEC_COMMANDS = ("install", "uninstall", "delete")
EXEC_PATH = "/crx/packmgr/service/exec.json"


class PackageAPI(Protocol):
    """What the core needs from the package manager."""

    def list(self, path: str, include_versions: bool = True) -> List[PackageRecord]: ...

    def upload(self, artifact: BinaryIO, filename: str, install: bool = False) -> XmlEnvelope: ...

    def exec(self, command: str, name: str, group: str, version: str) -> ExecResponse: ...


@contextmanager
def transport_errors(what: str) -> Iterator[None]:
    """Translate httpx transport failures into EndpointUnavailableError."""
    try:
        yield
    except httpx.TimeoutException as e:
        raise EndpointUnavailableError(f"{what} timed out: {e}")
    except httpx.TransportError as e:
        raise EndpointUnavailableError(f"{what} is unreachable: {e}")


def check_status(response: httpx.Response, what: str, polling: bool = False) -> None:
    """
    Raise the matching error for a non-success HTTP status.

    Polling endpoints answer with errors while the runtime starts up, so with
    ``polling`` every non-success status is treated as transient.
    """
    if response.is_success:
        return
    code = response.status_code
    context = {"status_code": code, "url": str(response.request.url)}
    if polling:
        raise EndpointUnavailableError(f"{what} response '{code}' is not a success", context)
    if code in (401, 403):
        raise AuthenticationError(f"{what} refused credentials (HTTP {code})", context)
    if 400 <= code < 500:
        raise RequestRejectedError(f"{what} rejected the request (HTTP {code})", context)
    raise EndpointUnavailableError(f"{what} response '{code}' is not a success", context)


def parse_json(response: httpx.Response, what: str) -> object:
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(f"{what} returned invalid JSON: {e}")


class CrxPackageClient:
    """
    httpx client for /crx/packmgr.

    One instance is owned by a single convergence run; close it afterwards.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 60,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(
            base_url=base_url,
            auth=(username, password),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def list(self, path: str, include_versions: bool = True) -> List[PackageRecord]:
        """Query the registry for packages under ``path``."""
        what = "Package list"
        logger.debug("Listing packages under %s", path)
        with transport_errors(what):
            response = self._http.get(
                "/crx/packmgr/list.jsp",
                params={"path": path, "includeVersions": str(include_versions).lower()},
            )
        check_status(response, what)
        data = parse_json(response, what)

        if not isinstance(data, dict):
            raise MalformedResponseError(f"{what} returned {type(data).__name__}, expected an object")
        try:
            return [PackageRecord.model_validate(r) for r in data.get("results") or []]
        except ValidationError as e:
            raise MalformedResponseError(f"{what} returned an unexpected record: {e}")

    def upload(self, artifact: BinaryIO, filename: str, install: bool = False) -> XmlEnvelope:
        """Upload a package archive, optionally installing it straight away."""
        what = "Package upload"
        logger.debug("Uploading %s, install: %s", filename, install)
        with transport_errors(what):
            response = self._http.post(
                "/crx/packmgr/service.jsp",
                files={"file": (filename, artifact, "application/zip")},
                data={"install": str(install).lower()},
            )
        check_status(response, what)
        return XmlEnvelope(body=response.text)

    def exec(self, command: str, name: str, group: str, version: str) -> ExecResponse:
        """Run install / uninstall / delete against one package version."""
        if command not in EXEC_COMMANDS:
            raise ContractViolationError(f"Unknown package command: {command}")

        identity = PackageIdentity(group=group, name=name, version=version)
        what = f"Package {command}"
        logger.debug("Running %s on %s", command, identity)
        with transport_errors(what):
            response = self._http.post(
                EXEC_PATH + identity.path,
                params={"cmd": command},
            )
        check_status(response, what)
        data = parse_json(response, what)
        try:
            return ExecResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"{what} returned an unexpected body: {e}")
