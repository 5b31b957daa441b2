"""Discovery index: apiVersion/kind → REST resource mapping."""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio.dynamic.exceptions import ResourceNotFoundError, ResourceNotUniqueError

from kubeassert.errors import API_ERRORS, DiscoveryError, RemoteError, is_not_found
from kubeassert.models.resources import ResourceMapping
from kubeassert.observability.logging import get_logger


class DiscoveryIndex:
    """Resolves resource kinds against the live API surface.

    Wraps a kubernetes_asyncio discoverer (``DynamicClient.resources``).
    Nothing is remembered between :meth:`resolve` calls; a kind installed by
    a CRD between two calls resolves on the second one.
    """

    def __init__(self, discoverer: Any) -> None:
        self._discoverer = discoverer
        self._log = get_logger("discovery")

    async def resolve(self, api_version: str, kind: str) -> ResourceMapping:
        """Return the mapping for *kind* in *api_version*.

        Raises:
            DiscoveryError: if the API server does not serve the kind.
            RemoteError: if the discovery request itself fails.
        """
        if not api_version or not kind:
            raise DiscoveryError(f"cannot resolve kind {kind!r} in apiVersion {api_version!r}")
        try:
            api_resource = await self._discoverer.get(api_version=api_version, kind=kind)
        except (ResourceNotFoundError, ResourceNotUniqueError) as exc:
            raise DiscoveryError(f"no resource mapping for {api_version}/{kind}: {exc}") from exc
        except API_ERRORS as exc:
            if is_not_found(exc):
                raise DiscoveryError(f"API group of {api_version}/{kind} is not served") from exc
            raise RemoteError.from_api_error(exc, f"discovery of {api_version}/{kind}") from exc

        mapping = ResourceMapping(
            kind=kind,
            group_version=str(getattr(api_resource, "group_version", api_version) or api_version),
            resource_name=str(getattr(api_resource, "name", "")),
            namespaced=bool(getattr(api_resource, "namespaced", True)),
            api_resource=api_resource,
        )
        self._log.debug(
            "kind_resolved",
            kind=kind,
            group_version=mapping.group_version,
            resource=mapping.resource_name,
            namespaced=mapping.namespaced,
        )
        return mapping
