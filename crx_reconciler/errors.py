"""
Error taxonomy for package convergence.

Every error carries a ``transient`` flag. The RetryExecutor retries only
transient errors; everything else aborts the current convergence run.

  Transient: endpoint unavailable, malformed response, runtime unstable
  Fatal:     authentication failure, rejected request, failed action,
             contract violation
"""

from typing import Any, Dict, Optional


class CrxReconcilerError(Exception):
    """Base exception for package convergence."""

    transient = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


# --- Transient (retried) ---

class TransientError(CrxReconcilerError):
    """A failure that may clear up on its own; safe to retry."""

    transient = True


class EndpointUnavailableError(TransientError):
    """The endpoint could not be reached or answered with a non-success status."""
    pass


class MalformedResponseError(TransientError):
    """The endpoint answered, but not with the payload we expect."""
    pass


class InstabilityError(TransientError):
    """The runtime reports active installer work or inactive bundles."""
    pass


# --- Fatal (never retried) ---

class FatalError(CrxReconcilerError):
    """A failure that retrying cannot fix."""
    pass


class AuthenticationError(FatalError):
    """Credentials were refused by the runtime."""
    pass


class RequestRejectedError(FatalError):
    """The runtime rejected the request itself (4xx other than auth)."""
    pass


class ActionFailedError(FatalError):
    """A package action completed with a negative verdict."""
    pass


class ContractViolationError(FatalError):
    """A caller or configuration bug: unknown desired state, missing source, etc."""
    pass


class ResponseShapeError(ContractViolationError):
    """A response that is neither an exec response nor an XML status envelope."""
    pass
