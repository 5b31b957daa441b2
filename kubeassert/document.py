"""Schema-agnostic access into nested resource documents.

Resource documents are plain ``dict``/``list``/scalar trees as decoded from
YAML or returned by the dynamic client.  Paths are dotted strings split on
``.`` with empty segments dropped, so ``.metadata.name`` and
``metadata.name`` address the same field.  No escaping of literal dots.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from kubeassert.errors import SelectorFormatError

_MISSING = object()


def split_path(path: str) -> list[str]:
    """Split a dotted path into its non-empty segments."""
    return [part for part in path.split(".") if part]


def get_nested(document: Mapping[str, Any], keys: list[str], default: Any = None) -> Any:
    """Return the value at *keys*, or *default* if any segment is absent.

    Only mappings are descended into; a scalar or list met along the way
    counts as absent.
    """
    current: Any = document
    for key in keys:
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current


def has_nested(document: Mapping[str, Any], keys: list[str]) -> bool:
    return get_nested(document, keys, _MISSING) is not _MISSING


def set_nested(document: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    """Set *value* at *keys*, creating intermediate mappings as needed.

    Raises:
        SelectorFormatError: if *keys* is empty or an intermediate value is
            not a mapping.
    """
    if not keys:
        raise SelectorFormatError("cannot set a value at an empty path")
    current: MutableMapping[str, Any] = document
    for depth, key in enumerate(keys[:-1]):
        nxt = current.get(key)
        if nxt is None:
            nxt = {}
            current[key] = nxt
        elif not isinstance(nxt, MutableMapping):
            prefix = ".".join(keys[: depth + 1])
            raise SelectorFormatError(f"value at {prefix!r} is of type {type(nxt).__name__}, not a map")
        current = nxt
    current[keys[-1]] = value


def scalar_to_str(value: Any) -> str:
    """Render a scalar the way it reads in a YAML document.

    Booleans become ``true``/``false`` and ``None`` becomes ``""``.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def coerce_scalar(value: str) -> int | str:
    """Return ``int(value)`` when *value* is an integer literal, else *value*."""
    try:
        return int(value)
    except ValueError:
        return value


def as_document(obj: Any) -> dict[str, Any]:
    """Return the plain-dict form of a dynamic client ``ResourceInstance``."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        result = to_dict()
        if isinstance(result, dict):
            return result
    raise TypeError(f"cannot convert {type(obj).__name__} to a resource document")
