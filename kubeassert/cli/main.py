"""kubeassert command-line interface.

Commands:
    kubeassert version                                Print version and exit.
    kubeassert apply OPERATION FILE [-n NS] [--multi]  create/submit/update/delete.
    kubeassert wait-state FILE STATE [-n NS]          Wait for created/deleted.
    kubeassert wait-selector FILE SELECTOR [-n NS]    Wait for <path>=<value>.
    kubeassert wait-condition FILE TYPE STATUS [-n NS] Wait for a status condition.
    kubeassert delete-path DIR                        Delete everything under DIR.

Every command except ``version`` connects with the current kubeconfig
(``$KUBECONFIG`` or ``~/.kube/config``).  Resource file names are resolved
against ``--files-path``.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from typing import Any

import click

from kubeassert import __version__
from kubeassert.cluster import bootstrap
from kubeassert.cluster.context import ClientContext
from kubeassert.config import load_config
from kubeassert.dispatch.cleanup import delete_resources_at_path
from kubeassert.dispatch.operations import multi_resource_operation, resource_operation
from kubeassert.errors import KubeAssertError, UnexpectedResultError
from kubeassert.models.config import KubeAssertConfig, LogConfig, WaiterConfig
from kubeassert.models.resources import ExistenceState, Operation
from kubeassert.observability.logging import VALID_LOG_LEVELS, setup_logging
from kubeassert.poller.convergence import (
    resource_condition_should_be,
    resource_should_be,
    resource_should_converge_to_selector,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _effective_config(obj: dict[str, Any]) -> KubeAssertConfig:
    """Environment config with any command-line overrides applied."""
    try:
        cfg = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    waiter = WaiterConfig(
        tries=obj.get("tries") or cfg.waiter.tries,
        interval_seconds=obj["interval"] if obj.get("interval") is not None else cfg.waiter.interval_seconds,
    )
    log = LogConfig(level=obj.get("log_level") or cfg.log.level, json_output=cfg.log.json_output)
    return dataclasses.replace(
        cfg,
        files_path=obj.get("files_path") or cfg.files_path,
        waiter=waiter,
        log=log,
    )


async def _with_context(cfg: KubeAssertConfig, action: Callable[[ClientContext], Awaitable[Any]]) -> Any:
    ctx = await bootstrap.connect(cfg)
    try:
        return await action(ctx)
    finally:
        await bootstrap.close(ctx)


def _run(obj: dict[str, Any], action: Callable[[ClientContext], Awaitable[Any]]) -> Any:
    """Connect, run *action* and translate kubeassert errors into exit code 1."""
    cfg = _effective_config(obj)
    setup_logging(cfg.log.level, json_output=cfg.log.json_output)
    try:
        return asyncio.run(_with_context(cfg, action))
    except (KubeAssertError, UnexpectedResultError) as exc:
        raise click.ClickException(str(exc)) from exc


_namespace_option = click.option(
    "--namespace", "-n", default="", metavar="NS", help="Namespace overriding the document's own."
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--files-path",
    default=None,
    envvar="KUBEASSERT_FILES_PATH",
    help="Directory resource file names are resolved against.  [default: templates]",
)
@click.option("--tries", type=click.IntRange(min=1), default=None, help="Poll attempts before timing out.")
@click.option("--interval", type=click.FloatRange(min=0.0), default=None, help="Seconds between poll attempts.")
@click.option(
    "--log-level",
    type=click.Choice(sorted(VALID_LOG_LEVELS), case_sensitive=False),
    default=None,
    help="Log level (overrides KUBEASSERT_LOG_LEVEL).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    files_path: str | None,
    tries: int | None,
    interval: float | None,
    log_level: str | None,
) -> None:
    """kubeassert - assert on Kubernetes resources from the command line."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        files_path=files_path,
        tries=tries,
        interval=interval,
        log_level=log_level.lower() if log_level else None,
    )


@cli.command("version")
def cmd_version() -> None:
    """Print the kubeassert version and exit."""
    click.echo(f"kubeassert {__version__}")


# ---------------------------------------------------------------------------
# kubeassert apply
# ---------------------------------------------------------------------------


@cli.command("apply")
@click.argument("operation", type=click.Choice([op.value for op in Operation], case_sensitive=False))
@click.argument("resource_file")
@_namespace_option
@click.option("--multi", is_flag=True, default=False, help="Apply to every document in a file or directory.")
@click.pass_context
def cmd_apply(ctx: click.Context, operation: str, resource_file: str, namespace: str, multi: bool) -> None:
    """Apply OPERATION (create, submit, update, delete) to RESOURCE_FILE."""
    op = Operation.parse(operation.lower())

    async def action(client_ctx: ClientContext) -> list[str]:
        if multi:
            return await multi_resource_operation(client_ctx, op, resource_file, namespace)
        return [await resource_operation(client_ctx, op, resource_file, namespace)]

    for result in _run(ctx.obj, action):
        click.echo(result)


# ---------------------------------------------------------------------------
# kubeassert wait-*
# ---------------------------------------------------------------------------


@cli.command("wait-state")
@click.argument("resource_file")
@click.argument("state", type=click.Choice([s.value for s in ExistenceState], case_sensitive=False))
@_namespace_option
@click.pass_context
def cmd_wait_state(ctx: click.Context, resource_file: str, state: str, namespace: str) -> None:
    """Wait until RESOURCE_FILE's resource is created or deleted."""
    attempts = _run(ctx.obj, lambda c: resource_should_be(c, resource_file, state.lower(), namespace))
    click.echo(click.style(f"{resource_file} is {state.lower()}", fg="green") + f" after {attempts} attempt(s)")


@cli.command("wait-selector")
@click.argument("resource_file")
@click.argument("selector")
@_namespace_option
@click.pass_context
def cmd_wait_selector(ctx: click.Context, resource_file: str, selector: str, namespace: str) -> None:
    """Wait until RESOURCE_FILE's resource matches SELECTOR (<dotted.path>=<value>)."""
    attempts = _run(ctx.obj, lambda c: resource_should_converge_to_selector(c, resource_file, selector, namespace))
    click.echo(click.style(f"{resource_file} converged to {selector}", fg="green") + f" after {attempts} attempt(s)")


@cli.command("wait-condition")
@click.argument("resource_file")
@click.argument("condition_type")
@click.argument("status")
@_namespace_option
@click.pass_context
def cmd_wait_condition(
    ctx: click.Context, resource_file: str, condition_type: str, status: str, namespace: str
) -> None:
    """Wait until RESOURCE_FILE's resource has condition CONDITION_TYPE=STATUS."""
    attempts = _run(
        ctx.obj, lambda c: resource_condition_should_be(c, resource_file, condition_type, status, namespace)
    )
    click.echo(
        click.style(f"{resource_file} has condition {condition_type}={status}", fg="green")
        + f" after {attempts} attempt(s)"
    )


# ---------------------------------------------------------------------------
# kubeassert delete-path
# ---------------------------------------------------------------------------


@cli.command("delete-path")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def cmd_delete_path(ctx: click.Context, directory: str) -> None:
    """Delete every resource under DIRECTORY and wait until all are gone."""
    count = _run(ctx.obj, lambda c: delete_resources_at_path(c, directory))
    click.echo(click.style(f"deleted {count} resource(s)", fg="green"))
