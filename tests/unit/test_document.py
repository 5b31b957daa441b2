"""Tests for kubeassert.document."""

from __future__ import annotations

from typing import Any

import pytest

from kubeassert.document import (
    as_document,
    coerce_scalar,
    get_nested,
    has_nested,
    scalar_to_str,
    set_nested,
    split_path,
)
from kubeassert.errors import SelectorFormatError

_DOC: dict[str, Any] = {"metadata": {"name": "w1", "labels": {"app": "demo"}}, "spec": {"ports": [80]}}


class TestPaths:
    @pytest.mark.parametrize("path", ["metadata.name", ".metadata.name", "metadata..name."])
    def test_empty_segments_dropped(self, path: str) -> None:
        assert split_path(path) == ["metadata", "name"]

    def test_get_nested(self) -> None:
        assert get_nested(_DOC, ["metadata", "labels", "app"]) == "demo"

    def test_get_nested_missing(self) -> None:
        assert get_nested(_DOC, ["metadata", "uid"], "none") == "none"

    def test_lists_are_not_indexed(self) -> None:
        assert get_nested(_DOC, ["spec", "ports", "0"]) is None

    def test_has_nested_distinguishes_null(self) -> None:
        doc = {"spec": {"value": None}}
        assert has_nested(doc, ["spec", "value"]) is True
        assert has_nested(doc, ["spec", "other"]) is False


class TestSetNested:
    def test_creates_intermediate_maps(self) -> None:
        doc: dict[str, Any] = {}
        set_nested(doc, ["a", "b", "c"], 1)
        assert doc == {"a": {"b": {"c": 1}}}

    def test_overwrites_leaf(self) -> None:
        doc: dict[str, Any] = {"spec": {"size": 1}}
        set_nested(doc, ["spec", "size"], 4)
        assert doc["spec"]["size"] == 4

    def test_scalar_in_the_way(self) -> None:
        with pytest.raises(SelectorFormatError, match="'spec'"):
            set_nested({"spec": "flat"}, ["spec", "size"], 1)

    def test_empty_path(self) -> None:
        with pytest.raises(SelectorFormatError):
            set_nested({}, [], 1)


class TestScalars:
    @pytest.mark.parametrize(
        ("value", "expected"), [(True, "true"), (False, "false"), (None, ""), (3, "3"), ("x", "x")]
    )
    def test_scalar_to_str(self, value: object, expected: str) -> None:
        assert scalar_to_str(value) == expected

    @pytest.mark.parametrize(("raw", "expected"), [("7", 7), ("-2", -2), ("7.5", "7.5"), ("abc", "abc")])
    def test_coerce_scalar(self, raw: str, expected: object) -> None:
        assert coerce_scalar(raw) == expected


class TestAsDocument:
    def test_dict_passthrough(self) -> None:
        assert as_document(_DOC) is _DOC

    def test_none(self) -> None:
        assert as_document(None) == {}

    def test_to_dict(self) -> None:
        class _Instance:
            def to_dict(self) -> dict[str, Any]:
                return {"kind": "Widget"}

        assert as_document(_Instance()) == {"kind": "Widget"}

    def test_unconvertible(self) -> None:
        with pytest.raises(TypeError):
            as_document(42)
