"""Bulk deletion of every resource under a directory tree.

Runs in two phases over the same lexical walk: submit a delete for every
resource, then wait for each of them to disappear.  Tests that care about
deletion order can rely on both phases visiting files in sorted path order.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

from kubeassert.cluster.context import ClientContext
from kubeassert.dispatch.operations import apply
from kubeassert.models.resources import ExistenceState, Operation, ResolvedResource
from kubeassert.observability.logging import get_logger
from kubeassert.poller.convergence import existence_predicate, poll
from kubeassert.resolver.discovery import DiscoveryIndex
from kubeassert.resolver.loader import iter_resource_files, resolve_many

_log = get_logger("cleanup")


async def _walk(ctx: ClientContext, root: Path) -> AsyncIterator[ResolvedResource]:
    """Resolve resource files one at a time, in lexical path order."""
    index = DiscoveryIndex(ctx.discovery)
    for path in iter_resource_files(root):
        for resource in await resolve_many(path, index, ctx.template_arguments):
            yield resource


async def delete_resources_at_path(ctx: ClientContext, root: str | Path) -> int:
    """Delete every resource under *root* and wait until all are gone.

    The first resolution or submission error aborts phase one.  Returns the
    number of resources deleted.

    Raises:
        PollTimeoutError: if a resource is still present after the retry
            budget is exhausted.
    """
    ctx.validate()
    root = Path(root)

    submitted = 0
    async for resource in _walk(ctx, root):
        await apply(ctx, Operation.DELETE, resource)
        submitted += 1
    _log.info("deletions_submitted", path=str(root), count=submitted)

    predicate = existence_predicate(ExistenceState.DELETED)
    waited = 0
    async for resource in _walk(ctx, root):
        await poll(ctx.dynamic, resource, predicate, ctx.retry)
        waited += 1
    _log.info("deletions_complete", path=str(root), count=waited)
    return waited


async def delete_all_test_resources(ctx: ClientContext) -> int:
    """Apply :func:`delete_resources_at_path` to the context's resource root."""
    return await delete_resources_at_path(ctx, ctx.files_path)
