"""Convergence poller: wait until a resource reaches a declared state.

One bounded retry loop (:func:`poll`) serves every wait in kubeassert.
Each attempt fetches the live resource, hands it (or ``None`` when the API
server reports 404) to a predicate, and either returns, sleeps for the
policy interval, or gives up with :class:`PollTimeoutError` once
``max_attempts`` fetches have been made.  Fetch errors other than 404 and
errors raised by the predicate are fatal and propagate immediately.

Three predicates are provided:

- :func:`existence_predicate`: presence matches ``created``/``deleted``
- :func:`field_predicate`: ``<dotted.path>=<value>`` selector, compared
  case-insensitively on the string form of the field
- :func:`condition_predicate`: a ``status.conditions`` entry of the given
  type carries the expected status
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kubeassert.cluster.context import ClientContext
from kubeassert.document import as_document, get_nested, scalar_to_str, split_path
from kubeassert.errors import (
    API_ERRORS,
    PollTimeoutError,
    RemoteError,
    ResourceNotFoundError,
    SelectorFormatError,
    is_not_found,
)
from kubeassert.models.resources import ExistenceState, PollOutcome, ResolvedResource, RetryPolicy
from kubeassert.observability.logging import get_logger
from kubeassert.observability.metrics import poll_attempts_total, poll_duration_seconds, poll_timeouts_total
from kubeassert.resolver.loader import load_resource

_log = get_logger("poller")

_MISSING = object()

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class Predicate:
    """A named convergence check over the fetched document (or ``None``)."""

    name: str
    description: str
    evaluate: Callable[[dict[str, Any] | None], PollOutcome]


# ---------------------------------------------------------------------------
# Normalisation and parsing
# ---------------------------------------------------------------------------


def normalize_status(status: str) -> str:
    """Case-fold *status* and capitalise its first letter only.

    ``"true"``, ``"TRUE"`` and ``"True"`` all normalise to ``"True"``.
    Later words stay lower case, so ``"not ready"`` becomes ``"Not ready"``.
    Comparison is exact after normalisation.
    """
    return status.strip().casefold().capitalize()


def parse_selector(selector: str) -> tuple[list[str], str]:
    """Split ``<dotted.path>=<value>`` into path segments and value.

    Raises:
        SelectorFormatError: unless there is exactly one ``=`` with a
            non-empty key and value on either side.
    """
    if selector.count("=") != 1:
        raise SelectorFormatError(f"Selector '{selector}' should meet format '<key>=<value>'")
    key, value = selector.split("=", 1)
    if not value:
        raise SelectorFormatError(f"Selector '{selector}' should meet format '<key>=<value>'")
    keys = split_path(key)
    if not keys:
        raise SelectorFormatError(f"Found empty 'key' in selector '{selector}' of form '<key>=<value>'")
    return keys, value


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def existence_predicate(state: str | ExistenceState) -> Predicate:
    """Satisfied when observed presence matches *state*."""
    try:
        target = ExistenceState(state)
    except ValueError:
        raise SelectorFormatError(f"unknown resource state '{state}', expected 'created' or 'deleted'") from None
    want_present = target is ExistenceState.CREATED

    def evaluate(observed: dict[str, Any] | None) -> PollOutcome:
        return PollOutcome.SATISFIED if (observed is not None) == want_present else PollOutcome.RETRY

    return Predicate(name="existence", description=f"resource to be {target.value}", evaluate=evaluate)


def field_predicate(selector: str) -> Predicate:
    """Satisfied when the selected field's string form equals the value, ignoring case.

    The selector is parsed eagerly, so a malformed one fails before any
    fetch is made.
    """
    keys, expected = parse_selector(selector)
    expected_folded = expected.casefold()
    path = ".".join(keys)

    def evaluate(observed: dict[str, Any] | None) -> PollOutcome:
        if observed is None:
            raise ResourceNotFoundError(f"resource is absent while waiting for {path}={expected}")
        value = get_nested(observed, keys, _MISSING)
        if value is _MISSING or isinstance(value, (Mapping, list)):
            return PollOutcome.RETRY
        if scalar_to_str(value).casefold() == expected_folded:
            return PollOutcome.SATISFIED
        return PollOutcome.RETRY

    return Predicate(name="field", description=f"{path}={expected}", evaluate=evaluate)


def condition_predicate(condition_type: str, status: str) -> Predicate:
    """Satisfied when a condition of *condition_type* has *status*.

    Entries of ``status.conditions`` that are not maps, or lack a string
    ``type`` or ``status``, are skipped.
    """
    expected = normalize_status(status)

    def evaluate(observed: dict[str, Any] | None) -> PollOutcome:
        if observed is None:
            raise ResourceNotFoundError(f"resource is absent while waiting for condition {condition_type}={expected}")
        conditions = get_nested(observed, ["status", "conditions"])
        if not isinstance(conditions, list):
            return PollOutcome.RETRY
        for condition in conditions:
            if not isinstance(condition, Mapping):
                continue
            ctype = condition.get("type")
            cstatus = condition.get("status")
            if not isinstance(ctype, str) or not isinstance(cstatus, str):
                continue
            if ctype == condition_type and normalize_status(cstatus) == expected:
                return PollOutcome.SATISFIED
        return PollOutcome.RETRY

    return Predicate(name="condition", description=f"condition {condition_type}={expected}", evaluate=evaluate)


# ---------------------------------------------------------------------------
# Poll loop
# ---------------------------------------------------------------------------


async def _fetch(dynamic: Any, resource: ResolvedResource, namespace: str | None) -> dict[str, Any] | None:
    try:
        live = await dynamic.get(resource.mapping.api_resource, name=resource.name, namespace=namespace)
    except API_ERRORS as exc:
        if is_not_found(exc):
            return None
        raise RemoteError.from_api_error(exc, f"get {resource.kind} {resource.name}") from exc
    return as_document(live)


async def poll(
    dynamic: Any,
    resource: ResolvedResource,
    predicate: Predicate,
    policy: RetryPolicy,
    namespace: str = "",
    sleep: Sleep = asyncio.sleep,
) -> int:
    """Poll *resource* until *predicate* is satisfied.

    Returns the number of fetch attempts made.

    Raises:
        PollTimeoutError: after ``policy.max_attempts`` unsatisfied attempts.
        RemoteError: on a fetch failure other than 404.
        KubeAssertError: whatever the predicate raises as fatal.
    """
    target = resource.target_namespace(namespace)
    started = time.monotonic()
    attempts = 0
    while True:
        attempts += 1
        poll_attempts_total.labels(predicate=predicate.name).inc()
        _log.info(
            "waiting_for_resource",
            kind=resource.kind,
            name=resource.name,
            namespace=target or "",
            waiting_for=predicate.description,
            attempt=attempts,
            max_attempts=policy.max_attempts,
        )

        observed = await _fetch(dynamic, resource, target)
        if predicate.evaluate(observed) is PollOutcome.SATISFIED:
            poll_duration_seconds.labels(predicate=predicate.name).observe(time.monotonic() - started)
            _log.info(
                "resource_converged",
                kind=resource.kind,
                name=resource.name,
                namespace=target or "",
                state=predicate.description,
                attempts=attempts,
            )
            return attempts

        if attempts >= policy.max_attempts:
            poll_timeouts_total.labels(predicate=predicate.name).inc()
            _log.warning(
                "poll_timed_out",
                kind=resource.kind,
                name=resource.name,
                namespace=target or "",
                waiting_for=predicate.description,
                attempts=attempts,
            )
            raise PollTimeoutError(f"{resource.kind} {resource.name}: {predicate.description}", attempts)

        await sleep(policy.interval)


# ---------------------------------------------------------------------------
# File-level assertions
# ---------------------------------------------------------------------------


async def resource_should_be(ctx: ClientContext, name: str | Path, state: str, namespace: str = "") -> int:
    """Wait until the resource in file *name* is ``created`` or ``deleted``."""
    predicate = existence_predicate(state)
    resource = await load_resource(ctx, name)
    return await poll(ctx.dynamic, resource, predicate, ctx.retry, namespace)


async def resource_should_converge_to_selector(
    ctx: ClientContext,
    name: str | Path,
    selector: str,
    namespace: str = "",
) -> int:
    """Wait until the resource in file *name* matches ``<dotted.path>=<value>``."""
    predicate = field_predicate(selector)
    resource = await load_resource(ctx, name)
    return await poll(ctx.dynamic, resource, predicate, ctx.retry, namespace)


async def resource_condition_should_be(
    ctx: ClientContext,
    name: str | Path,
    condition_type: str,
    status: str,
    namespace: str = "",
) -> int:
    """Wait until the resource in file *name* reports condition *condition_type* = *status*."""
    predicate = condition_predicate(condition_type, status)
    resource = await load_resource(ctx, name)
    return await poll(ctx.dynamic, resource, predicate, ctx.retry, namespace)
