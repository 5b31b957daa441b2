"""Tests for kubeassert.dispatch.cleanup."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from conftest import FakeDynamicClient

from kubeassert.cluster.context import ClientContext
from kubeassert.dispatch.cleanup import delete_all_test_resources, delete_resources_at_path
from kubeassert.errors import DiscoveryError, PollTimeoutError, ResourceFileNotFoundError, ValidationError

_WIDGET = "apiVersion: example.io/v1\nkind: Widget\nmetadata:\n  name: {name}\n  namespace: ns\n"
_GADGET = "apiVersion: example.io/v1\nkind: Gadget\nmetadata:\n  name: {name}\n  namespace: ns\n"


def _seed(dynamic: FakeDynamicClient, resource: str, name: str) -> None:
    dynamic.objects[(resource, "ns", name)] = {"metadata": {"name": name, "namespace": "ns"}}


class TestDeleteResourcesAtPath:
    async def test_deletes_then_waits_in_lexical_order(
        self,
        client_ctx: ClientContext,
        dynamic: FakeDynamicClient,
        write_yaml: Callable[[str, str], Path],
        tmp_path: Path,
    ) -> None:
        write_yaml("suite/b.yaml", _GADGET.format(name="g1"))
        write_yaml("suite/a.yaml", _WIDGET.format(name="w1") + "---\n" + _WIDGET.format(name="w2"))
        _seed(dynamic, "widgets", "w1")
        _seed(dynamic, "gadgets", "g1")

        count = await delete_resources_at_path(client_ctx, tmp_path / "suite")

        assert count == 3
        assert dynamic.objects == {}
        assert dynamic.calls == [
            ("delete", "widgets", "ns", "w1"),
            ("delete", "widgets", "ns", "w2"),
            ("delete", "gadgets", "ns", "g1"),
            ("get", "widgets", "ns", "w1"),
            ("get", "widgets", "ns", "w2"),
            ("get", "gadgets", "ns", "g1"),
        ]

    async def test_resolution_error_aborts_first_phase(
        self,
        client_ctx: ClientContext,
        dynamic: FakeDynamicClient,
        write_yaml: Callable[[str, str], Path],
        tmp_path: Path,
    ) -> None:
        write_yaml("suite/1.yaml", _WIDGET.format(name="w1"))
        write_yaml("suite/2.yaml", "apiVersion: example.io/v9\nkind: Unknown\nmetadata: {name: u}\n")
        write_yaml("suite/3.yaml", _GADGET.format(name="g1"))

        with pytest.raises(DiscoveryError):
            await delete_resources_at_path(client_ctx, tmp_path / "suite")

        assert dynamic.verbs() == ["delete"]

    async def test_lingering_resource_times_out(
        self,
        client_ctx: ClientContext,
        dynamic: FakeDynamicClient,
        write_yaml: Callable[[str, str], Path],
        tmp_path: Path,
    ) -> None:
        write_yaml("suite/a.yaml", _WIDGET.format(name="w1"))
        lingering = {"metadata": {"name": "w1", "finalizers": ["example.io/hold"]}}
        dynamic.get_results = [lingering] * client_ctx.retry.max_attempts

        with pytest.raises(PollTimeoutError):
            await delete_resources_at_path(client_ctx, tmp_path / "suite")

    async def test_templates_without_namespace_are_rejected(
        self,
        client_ctx: ClientContext,
        dynamic: FakeDynamicClient,
        write_yaml: Callable[[str, str], Path],
        tmp_path: Path,
    ) -> None:
        write_yaml("suite/a.yaml", "apiVersion: example.io/v1\nkind: Widget\nmetadata:\n  name: w1\n")

        with pytest.raises(ValidationError, match="namespace is required"):
            await delete_resources_at_path(client_ctx, tmp_path / "suite")

        assert dynamic.calls == []

    async def test_missing_directory(self, client_ctx: ClientContext, tmp_path: Path) -> None:
        with pytest.raises(ResourceFileNotFoundError):
            await delete_resources_at_path(client_ctx, tmp_path / "absent")


class TestDeleteAllTestResources:
    async def test_uses_files_path(
        self,
        client_ctx: ClientContext,
        dynamic: FakeDynamicClient,
        write_yaml: Callable[[str, str], Path],
    ) -> None:
        write_yaml("x.yaml", _WIDGET.format(name="w1"))
        _seed(dynamic, "widgets", "w1")

        assert await delete_all_test_resources(client_ctx) == 1
        assert dynamic.verbs() == ["delete", "get"]
