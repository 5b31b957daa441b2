"""Cluster connection bootstrap: kubeconfig → populated ClientContext."""

from __future__ import annotations

from pathlib import Path

from kubernetes_asyncio import client, config
from kubernetes_asyncio.dynamic import DynamicClient

from kubeassert.cluster.context import ClientContext
from kubeassert.errors import API_ERRORS, RemoteError, ValidationError
from kubeassert.models.config import KubeAssertConfig
from kubeassert.observability.logging import get_logger

_log = get_logger("bootstrap")


async def connect(cfg: KubeAssertConfig) -> ClientContext:
    """Load the kubeconfig, build the client handles and check reachability.

    Raises:
        ValidationError: if the kubeconfig file does not exist.
        RemoteError: if the API server does not answer the version probe.
    """
    kubeconfig = Path(cfg.kubeconfig)
    if not kubeconfig.exists():
        raise ValidationError(f"expected kubeconfig to exist at '{kubeconfig}'")

    api_client = await config.new_client_from_config(config_file=str(kubeconfig))
    try:
        version = await client.VersionApi(api_client).get_code()
        dynamic = await DynamicClient(api_client)
    except API_ERRORS as exc:
        await api_client.close()
        raise RemoteError.from_api_error(exc, "cluster version probe") from exc
    except Exception:
        await api_client.close()
        raise

    _log.info(
        "cluster_connected",
        kubeconfig=str(kubeconfig),
        server_version=getattr(version, "git_version", ""),
    )
    return ClientContext(
        kube_api=api_client,
        dynamic=dynamic,
        discovery=dynamic.resources,
        files_path=cfg.files_path,
        retry=cfg.retry_policy(),
    )


async def close(ctx: ClientContext) -> None:
    """Release the underlying HTTP session.  Safe to call twice."""
    if ctx.kube_api is not None:
        await ctx.kube_api.close()
        ctx.kube_api = None
    ctx.dynamic = None
    ctx.discovery = None
