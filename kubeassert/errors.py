"""Error taxonomy for resource resolution, dispatch and convergence polling.

Terminal errors (validation, decode, discovery, format, unsupported
operation) are raised immediately and never retried.  Only the convergence
poller produces :class:`PollTimeoutError`.  Remote failures that are not
otherwise classified are wrapped in :class:`RemoteError` with the HTTP status
preserved.
"""

from __future__ import annotations

import json
from typing import Any

from kubernetes_asyncio.client.exceptions import ApiException
from kubernetes_asyncio.dynamic.exceptions import DynamicApiError

# Exceptions raised by the kubernetes_asyncio typed and dynamic clients.
API_ERRORS: tuple[type[Exception], ...] = (ApiException, DynamicApiError)


class KubeAssertError(Exception):
    """Base class for every error raised by kubeassert."""


class ValidationError(KubeAssertError):
    """A required remote-access handle or addressing detail is missing.

    Raised for an unset client-context handle, and for a namespaced
    resource that has no namespace to be addressed in.
    """


class DecodeError(KubeAssertError):
    """A resource document is malformed or lacks required fields."""


class TemplateError(KubeAssertError):
    """Parameter substitution into a resource document failed."""


class DiscoveryError(KubeAssertError):
    """The API server does not serve the requested kind/version."""


class ResourceFileNotFoundError(KubeAssertError, FileNotFoundError):
    """A resource file or directory does not exist."""


class ResourceNotFoundError(KubeAssertError):
    """A remote resource is absent where its presence is required."""


class SelectorFormatError(KubeAssertError, ValueError):
    """A field selector or dotted path is malformed."""


class UnsupportedOperationError(KubeAssertError, ValueError):
    """An operation token outside the supported closed set was supplied."""


class PollTimeoutError(KubeAssertError, TimeoutError):
    """Raised when a convergence poll exhausts its retry budget.

    Attributes:
        description: What was being waited for.
        attempts: Number of fetch attempts that were made.
    """

    def __init__(self, description: str, attempts: int) -> None:
        self.description = description
        self.attempts = attempts
        super().__init__(f"waiter timed out waiting for {description} after {attempts} attempts")


class RemoteError(KubeAssertError):
    """Pass-through wrapper for API errors not otherwise classified."""

    def __init__(self, message: str, status: int | None = None, reason: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason

    @classmethod
    def from_api_error(cls, exc: Exception, action: str) -> RemoteError:
        status = _status_of(exc)
        reason = getattr(exc, "reason", None)
        err = cls(f"{action} failed: {status} {reason or ''}".rstrip(), status=status, reason=reason)
        err.__cause__ = exc
        return err


class UnexpectedResultError(AssertionError):
    """An operation's outcome did not match the expected result."""


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------


def _status_of(exc: Exception) -> int | None:
    status = getattr(exc, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _body_reason(exc: Exception) -> str | None:
    """Return the ``reason`` field of a Kubernetes Status body, if any."""
    body: Any = getattr(exc, "body", None)
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return None
    if isinstance(body, dict):
        reason = body.get("reason")
        return str(reason) if reason is not None else None
    return None


def is_not_found(exc: Exception) -> bool:
    """Return True if *exc* is an API error reporting HTTP 404."""
    return isinstance(exc, API_ERRORS) and _status_of(exc) == 404


def presence_failure(exc: Exception, action: str) -> KubeAssertError:
    """Map an API error raised where the resource must exist.

    404 becomes :class:`ResourceNotFoundError`; anything else a
    :class:`RemoteError`.
    """
    if is_not_found(exc):
        err: KubeAssertError = ResourceNotFoundError(f"{action} failed: resource not found")
        err.__cause__ = exc
        return err
    return RemoteError.from_api_error(exc, action)


def is_already_exists(exc: Exception) -> bool:
    """Return True if *exc* is an API error reporting an existing resource.

    A 409 whose Status body names a different reason (e.g. ``Conflict`` from
    a stale resourceVersion) is not treated as "already exists".
    """
    if not isinstance(exc, API_ERRORS) or _status_of(exc) != 409:
        return False
    reason = _body_reason(exc)
    return reason is None or reason == "AlreadyExists"
