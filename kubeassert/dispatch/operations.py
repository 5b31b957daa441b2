"""Operation dispatcher: create / update / delete through the dynamic client.

Namespace policy: a non-empty namespace argument always wins over the
namespace embedded in the document, and the document sent to the API
server is stamped with it.  A mismatch is logged at debug level, never
raised.  Cluster-scoped kinds are addressed without a namespace.  A
namespaced kind with neither an override nor an embedded namespace raises
:class:`ValidationError` before any remote call; there is no fallback to
the kubeconfig context namespace.

Create is idempotent against an existing resource and delete against an
absent one; both outcomes are logged and counted, not raised.  Update
propagates every failure, including a missing live object.  Dispatch
operations are never retried.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from kubeassert.cluster.context import ClientContext
from kubeassert.document import as_document, coerce_scalar, set_nested, split_path
from kubeassert.errors import (
    API_ERRORS,
    RemoteError,
    SelectorFormatError,
    UnexpectedResultError,
    is_already_exists,
    is_not_found,
    presence_failure,
)
from kubeassert.models.resources import Operation, ResolvedResource
from kubeassert.observability.logging import get_logger
from kubeassert.observability.metrics import operations_total
from kubeassert.resolver.loader import load_resource, load_resources

_log = get_logger("dispatch")

_EXPECT_FAILURE = "fail"


def _body_for(resource: ResolvedResource, namespace: str | None) -> dict[str, Any]:
    body = copy.deepcopy(resource.document)
    if namespace:
        body.setdefault("metadata", {})["namespace"] = namespace
    return body


# ---------------------------------------------------------------------------
# Per-operation handlers
# ---------------------------------------------------------------------------


async def _create(ctx: ClientContext, resource: ResolvedResource, namespace: str | None) -> str:
    try:
        await ctx.dynamic.create(
            resource.mapping.api_resource,
            body=_body_for(resource, namespace),
            namespace=namespace,
        )
    except API_ERRORS as exc:
        if is_already_exists(exc):
            _log.info(
                "resource_already_exists",
                kind=resource.kind,
                name=resource.name,
                namespace=namespace or "",
                state="created",
            )
            return "already_exists"
        raise RemoteError.from_api_error(exc, f"create {resource.kind} {resource.name}") from exc
    _log.info("resource_created", kind=resource.kind, name=resource.name, namespace=namespace or "", state="created")
    return "created"


async def _update(ctx: ClientContext, resource: ResolvedResource, namespace: str | None) -> str:
    api_resource = resource.mapping.api_resource
    try:
        live = await ctx.dynamic.get(api_resource, name=resource.name, namespace=namespace)
    except API_ERRORS as exc:
        raise presence_failure(exc, f"get {resource.kind} {resource.name} before update") from exc

    body = _body_for(resource, namespace)
    live_version = as_document(live).get("metadata", {}).get("resourceVersion")
    if live_version:
        body.setdefault("metadata", {})["resourceVersion"] = live_version

    try:
        await ctx.dynamic.replace(api_resource, body=body, name=resource.name, namespace=namespace)
    except API_ERRORS as exc:
        raise RemoteError.from_api_error(exc, f"update {resource.kind} {resource.name}") from exc
    _log.info(
        "resource_updated",
        kind=resource.kind,
        name=resource.name,
        namespace=namespace or "",
        state="updated",
        resource_version=live_version,
    )
    return "updated"


async def _delete(ctx: ClientContext, resource: ResolvedResource, namespace: str | None) -> str:
    try:
        await ctx.dynamic.delete(resource.mapping.api_resource, name=resource.name, namespace=namespace)
    except API_ERRORS as exc:
        if is_not_found(exc):
            _log.info(
                "resource_already_deleted",
                kind=resource.kind,
                name=resource.name,
                namespace=namespace or "",
                state="deleted",
            )
            return "already_deleted"
        raise RemoteError.from_api_error(exc, f"delete {resource.kind} {resource.name}") from exc
    _log.info("resource_deleted", kind=resource.kind, name=resource.name, namespace=namespace or "", state="deleted")
    return "deleted"


_HANDLERS = {
    Operation.CREATE: _create,
    Operation.UPDATE: _update,
    Operation.DELETE: _delete,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def apply(
    ctx: ClientContext,
    operation: str | Operation,
    resource: ResolvedResource,
    namespace: str = "",
) -> str:
    """Apply *operation* to *resource*.

    Returns the resulting state: ``created``, ``already_exists``,
    ``updated``, ``deleted`` or ``already_deleted``.

    Raises:
        UnsupportedOperationError: for tokens outside the closed set, before
            any remote call.
        RemoteError: for API failures other than the idempotent cases.
    """
    op = Operation.parse(operation).canonical
    ctx.validate()

    target = resource.target_namespace(namespace)
    if namespace and resource.namespace and namespace != resource.namespace:
        _log.debug(
            "namespace_overridden",
            kind=resource.kind,
            name=resource.name,
            document_namespace=resource.namespace,
            namespace=namespace,
        )

    try:
        result = await _HANDLERS[op](ctx, resource, target)
    except Exception:
        operations_total.labels(operation=op.value, result="error").inc()
        raise
    operations_total.labels(operation=op.value, result=result).inc()
    return result


async def apply_many(
    ctx: ClientContext,
    operation: str | Operation,
    resources: Sequence[ResolvedResource],
    namespace: str = "",
) -> list[str]:
    """Apply *operation* to each resource in order, stopping at the first error."""
    op = Operation.parse(operation)
    return [await apply(ctx, op, resource, namespace) for resource in resources]


async def resource_operation(
    ctx: ClientContext,
    operation: str | Operation,
    name: str | Path,
    namespace: str = "",
) -> str:
    """Resolve the single resource file *name* and apply *operation* to it."""
    op = Operation.parse(operation)
    resource = await load_resource(ctx, name)
    return await apply(ctx, op, resource, namespace)


async def multi_resource_operation(
    ctx: ClientContext,
    operation: str | Operation,
    name: str | Path,
    namespace: str = "",
) -> list[str]:
    """Resolve every resource in the file or directory *name* and apply *operation*."""
    op = Operation.parse(operation)
    resources = await load_resources(ctx, name)
    return await apply_many(ctx, op, resources, namespace)


async def apply_expecting_result(
    ctx: ClientContext,
    operation: str | Operation,
    name: str | Path,
    expected_result: str,
    namespace: str = "",
) -> None:
    """Run :func:`resource_operation` and check its outcome.

    ``expected_result`` of ``"fail"`` (any case) expects an error; any other
    value expects success.

    Raises:
        UnexpectedResultError: when the outcome does not match.
    """
    expect_error = expected_result.strip().lower() == _EXPECT_FAILURE
    try:
        await resource_operation(ctx, operation, name, namespace)
    except Exception as exc:
        if not expect_error:
            raise UnexpectedResultError(f"unexpected error when '{operation}' '{name}': {exc}") from exc
        _log.info("operation_failed_as_expected", operation=str(operation), file=str(name), error=str(exc))
        return
    if expect_error:
        raise UnexpectedResultError(f"expected error when '{operation}' '{name}', but received none")


async def update_resource_with_field(
    ctx: ClientContext,
    name: str | Path,
    key: str,
    value: str,
    namespace: str = "",
) -> None:
    """Set the dotted field *key* of the live resource to *value*.

    Integer literals are written as numbers, anything else as a string.
    """
    keys = split_path(key)
    if not keys:
        raise SelectorFormatError(f"Found empty key '{key}'")

    resource = await load_resource(ctx, name)
    target = resource.target_namespace(namespace)
    api_resource = resource.mapping.api_resource
    try:
        live = as_document(await ctx.dynamic.get(api_resource, name=resource.name, namespace=target))
    except API_ERRORS as exc:
        raise presence_failure(exc, f"get {resource.kind} {resource.name}") from exc

    body = copy.deepcopy(live)
    set_nested(body, keys, coerce_scalar(value))
    try:
        await ctx.dynamic.replace(api_resource, body=body, name=resource.name, namespace=target)
    except API_ERRORS as exc:
        raise RemoteError.from_api_error(exc, f"update {resource.kind} {resource.name}") from exc
    operations_total.labels(operation=Operation.UPDATE.value, result="updated").inc()
    _log.info(
        "resource_field_updated",
        kind=resource.kind,
        name=resource.name,
        namespace=target or "",
        field=".".join(keys),
        value=value,
    )
