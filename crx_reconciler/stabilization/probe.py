"""
Runtime status probes — raw reads of the two health signals.

  Installer status: Jolokia read of the Sling OSGi installer MBeans
  Bundle status:    Felix web console bundles.json (basic auth)

The probe only fetches and decodes JSON; judging the payload is the
StabilizationWaiter's job.
"""

from typing import Optional, Protocol

import httpx

from crx_reconciler.execution.client import check_status, parse_json, transport_errors

INSTALLER_STATUS_PATH = "/jolokia/read/org.apache.sling.installer:type=Installer,name=*"
BUNDLE_STATUS_PATH = "/system/console/bundles.json"


class StatusProbe(Protocol):
    """Source of runtime health payloads."""

    def installer_status(self) -> object: ...

    def bundle_status(self) -> object: ...


class RuntimeProbe:
    """httpx-backed StatusProbe for a local runtime."""

    def __init__(
        self,
        jolokia_url: str,
        console_url: str,
        username: str,
        password: str,
        timeout: float = 60,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._jolokia = httpx.Client(base_url=jolokia_url, timeout=timeout, transport=transport)
        self._console = httpx.Client(
            base_url=console_url,
            auth=(username, password),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._jolokia.close()
        self._console.close()

    def installer_status(self) -> object:
        return self._get(self._jolokia, INSTALLER_STATUS_PATH, "Installer status")

    def bundle_status(self) -> object:
        return self._get(self._console, BUNDLE_STATUS_PATH, "Bundle status")

    def _get(self, client: httpx.Client, path: str, what: str) -> object:
        with transport_errors(what):
            response = client.get(path)
        check_status(response, what, polling=True)
        return parse_json(response, what)
