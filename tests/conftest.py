"""Shared fixtures: an in-memory dynamic client and discoverer."""

from __future__ import annotations

import copy
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from kubernetes_asyncio.client.exceptions import ApiException
from kubernetes_asyncio.dynamic.exceptions import ResourceNotFoundError

from kubeassert.cluster.context import ClientContext
from kubeassert.models.resources import ResolvedResource, ResourceMapping, RetryPolicy


def api_error(status: int, reason: str = "") -> ApiException:
    exc = ApiException(status=status, reason=reason or None)
    if reason:
        exc.body = json.dumps({"kind": "Status", "reason": reason})
    return exc


@dataclass(frozen=True)
class FakeApiResource:
    kind: str
    group_version: str
    name: str
    namespaced: bool = True


class FakeDiscoverer:
    """Stands in for ``DynamicClient.resources``."""

    def __init__(self, *resources: FakeApiResource) -> None:
        self._resources = {(r.group_version, r.kind): r for r in resources}
        self.calls: list[tuple[str, str]] = []

    def add(self, resource: FakeApiResource) -> None:
        self._resources[(resource.group_version, resource.kind)] = resource

    async def get(self, api_version: str, kind: str) -> FakeApiResource:
        self.calls.append((api_version, kind))
        try:
            return self._resources[(api_version, kind)]
        except KeyError:
            raise ResourceNotFoundError(f"No matches found for {{'api_version': {api_version!r}, 'kind': {kind!r}}}")


@dataclass
class FakeDynamicClient:
    """In-memory dynamic client keyed by (resource, namespace, name).

    ``get_results`` scripts successive ``get`` outcomes: each entry is a
    document, ``None`` (404) or an exception to raise.  Once exhausted,
    ``get`` falls back to the store.
    """

    objects: dict[tuple[str, str | None, str], dict[str, Any]] = field(default_factory=dict)
    calls: list[tuple[str, str, str | None, str]] = field(default_factory=list)
    get_results: list[Any] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)
    version: int = 0

    def _key(self, resource: FakeApiResource, namespace: str | None, name: str) -> tuple[str, str | None, str]:
        return (resource.name, namespace, name)

    def _require_namespace(self, resource: FakeApiResource, namespace: str | None, verb: str) -> None:
        # the real client refuses to address a namespaced kind without one
        if resource.namespaced and not namespace:
            if verb == "delete":
                raise ValueError("At least one of namespace|label_selector|field_selector is required")
            raise ValueError(f"Namespace is required for {resource.group_version}.{resource.kind}")

    def _raise_if_scripted(self, verb: str) -> None:
        if verb in self.errors:
            raise self.errors[verb]

    async def create(self, resource: FakeApiResource, body: dict[str, Any], namespace: str | None = None) -> Any:
        name = body["metadata"]["name"]
        self.calls.append(("create", resource.name, namespace, name))
        self._require_namespace(resource, namespace, "create")
        self._raise_if_scripted("create")
        key = self._key(resource, namespace, name)
        if key in self.objects:
            raise api_error(409, "AlreadyExists")
        self.version += 1
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = str(self.version)
        self.objects[key] = stored
        return stored

    async def get(self, resource: FakeApiResource, name: str, namespace: str | None = None) -> Any:
        self.calls.append(("get", resource.name, namespace, name))
        self._raise_if_scripted("get")
        if self.get_results:
            result = self.get_results.pop(0)
            if isinstance(result, Exception):
                raise result
            if result is None:
                raise api_error(404, "NotFound")
            return result
        try:
            return copy.deepcopy(self.objects[self._key(resource, namespace, name)])
        except KeyError:
            raise api_error(404, "NotFound") from None

    async def replace(
        self,
        resource: FakeApiResource,
        body: dict[str, Any],
        name: str | None = None,
        namespace: str | None = None,
    ) -> Any:
        name = name or body["metadata"]["name"]
        self.calls.append(("replace", resource.name, namespace, name))
        self._require_namespace(resource, namespace, "replace")
        self._raise_if_scripted("replace")
        key = self._key(resource, namespace, name)
        if key not in self.objects:
            raise api_error(404, "NotFound")
        current = self.objects[key]["metadata"].get("resourceVersion")
        if body.get("metadata", {}).get("resourceVersion") != current:
            raise api_error(409, "Conflict")
        self.version += 1
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = str(self.version)
        self.objects[key] = stored
        return stored

    async def delete(self, resource: FakeApiResource, name: str, namespace: str | None = None) -> Any:
        self.calls.append(("delete", resource.name, namespace, name))
        self._require_namespace(resource, namespace, "delete")
        self._raise_if_scripted("delete")
        key = self._key(resource, namespace, name)
        if key not in self.objects:
            raise api_error(404, "NotFound")
        return self.objects.pop(key)

    def verbs(self) -> list[str]:
        return [call[0] for call in self.calls]


WIDGET = FakeApiResource(kind="Widget", group_version="example.io/v1", name="widgets")
GADGET = FakeApiResource(kind="Gadget", group_version="example.io/v1", name="gadgets")
CLUSTER_THING = FakeApiResource(kind="ClusterThing", group_version="example.io/v1", name="clusterthings", namespaced=False)
CONFIGMAP = FakeApiResource(kind="ConfigMap", group_version="v1", name="configmaps")


def make_resource(
    api_resource: FakeApiResource = WIDGET,
    name: str = "w1",
    namespace: str | None = None,
    **extra: Any,
) -> ResolvedResource:
    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    document: dict[str, Any] = {
        "apiVersion": api_resource.group_version,
        "kind": api_resource.kind,
        "metadata": metadata,
        **extra,
    }
    mapping = ResourceMapping(
        kind=api_resource.kind,
        group_version=api_resource.group_version,
        resource_name=api_resource.name,
        namespaced=api_resource.namespaced,
        api_resource=api_resource,
    )
    return ResolvedResource(mapping=mapping, document=document)


@pytest.fixture
def discoverer() -> FakeDiscoverer:
    return FakeDiscoverer(WIDGET, GADGET, CLUSTER_THING, CONFIGMAP)


@pytest.fixture
def dynamic() -> FakeDynamicClient:
    return FakeDynamicClient()


@pytest.fixture
def client_ctx(tmp_path: Path, dynamic: FakeDynamicClient, discoverer: FakeDiscoverer) -> ClientContext:
    return ClientContext(
        kube_api=object(),
        dynamic=dynamic,
        discovery=discoverer,
        files_path=str(tmp_path),
        retry=RetryPolicy(max_attempts=3, interval=0),
    )


@pytest.fixture
def write_yaml(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write *content* to *relpath* under tmp_path and return the path."""

    def _write(relpath: str, content: str) -> Path:
        path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
