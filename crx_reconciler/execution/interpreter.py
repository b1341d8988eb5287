"""
Response Interpreter — one verdict from two wire shapes.

  ExecResponse  (install / uninstall / delete): verdict mirrors success + msg
  XmlEnvelope   (upload): success when crx/response/status@code == 200

Anything else cannot be judged and raises ResponseShapeError; it is never
turned into a negative verdict.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Union

from crx_reconciler.errors import ActionFailedError, ResponseShapeError
from crx_reconciler.models.responses import ActionVerdict, ExecResponse, XmlEnvelope

logger = logging.getLogger(__name__)

PackageResponse = Union[ExecResponse, XmlEnvelope]


class ResponseInterpreter:
    """Turns raw package-manager responses into ActionVerdicts."""

    def interpret(self, raw: object) -> ActionVerdict:
        if isinstance(raw, ExecResponse):
            return ActionVerdict(success=raw.success, message=raw.msg)
        if isinstance(raw, XmlEnvelope):
            return self._interpret_envelope(raw)
        raise ResponseShapeError(
            f"Cannot interpret package manager response of type {type(raw).__name__}"
        )

    def raise_on_failure(self, raw: object) -> ActionVerdict:
        """Interpret ``raw`` and raise ActionFailedError on a negative verdict."""
        verdict = self.interpret(raw)
        if not verdict.success:
            logger.warning("Package action failed: %s", verdict.message)
            raise ActionFailedError(verdict.message)
        return verdict

    def _interpret_envelope(self, envelope: XmlEnvelope) -> ActionVerdict:
        try:
            root = ET.fromstring(envelope.body)
        except ET.ParseError as e:
            raise ResponseShapeError(f"Unparseable XML status envelope: {e}")

        status = root.find("response/status")
        if status is None:
            raise ResponseShapeError("XML status envelope has no response/status element")

        try:
            code = int(status.get("code", ""))
        except ValueError:
            raise ResponseShapeError(
                f"XML status envelope has a non-numeric status code: {status.get('code')!r}"
            )

        message = (status.text or "").strip()
        logger.debug("Upload status %d: %s", code, message)
        return ActionVerdict(success=code == 200, message=message)
