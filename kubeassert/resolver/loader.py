"""Resource resolver: YAML files → :class:`ResolvedResource` handles.

A path may name a single-document file, a multi-document file (documents
separated by ``---``) or a directory, which is walked recursively in
lexical order keeping only ``.yaml`` files.  Document order is preserved in
the returned sequence and is the order dispatch consumes it in.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from kubeassert.errors import DecodeError, ResourceFileNotFoundError
from kubeassert.models.resources import ResolvedResource
from kubeassert.resolver.discovery import DiscoveryIndex
from kubeassert.templating import render

if TYPE_CHECKING:
    from kubeassert.cluster.context import ClientContext

RESOURCE_FILE_SUFFIX = ".yaml"


def iter_resource_files(root: str | Path) -> Iterator[Path]:
    """Yield every resource file under *root* in lexical path order.

    A file *root* is yielded as is, whatever its suffix.

    Raises:
        ResourceFileNotFoundError: if *root* does not exist.
    """
    root = Path(root)
    if not root.exists():
        raise ResourceFileNotFoundError(f"resource path '{root}' does not exist")
    if root.is_file():
        yield root
        return
    for path in sorted(root.rglob(f"*{RESOURCE_FILE_SUFFIX}")):
        if path.is_file():
            yield path


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ResourceFileNotFoundError(f"resource file '{path}' does not exist") from exc
    except IsADirectoryError as exc:
        raise DecodeError(f"'{path}' is a directory, expected a resource file") from exc


def decode_documents(text: str, source: str = "<string>") -> list[dict[str, Any]]:
    """Decode every non-empty YAML document in *text*.

    Raises:
        DecodeError: on YAML syntax errors, non-mapping documents, or
            documents missing ``apiVersion``, ``kind`` or ``metadata.name``.
    """
    try:
        raw_docs = list(yaml.safe_load_all(text))
    except yaml.YAMLError as exc:
        raise DecodeError(f"failed to decode {source}: {exc}") from exc

    documents: list[dict[str, Any]] = []
    for index, doc in enumerate(raw_docs):
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise DecodeError(f"document {index} in {source} is a {type(doc).__name__}, expected a map")
        _check_required_fields(doc, f"document {index} in {source}")
        documents.append(doc)
    return documents


def _check_required_fields(doc: Mapping[str, Any], where: str) -> None:
    for key in ("apiVersion", "kind"):
        if not isinstance(doc.get(key), str) or not doc[key]:
            raise DecodeError(f"{where} is missing '{key}'")
    metadata = doc.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise DecodeError(f"{where} is missing 'metadata.name'")


async def _resolve_file(
    path: Path,
    index: DiscoveryIndex,
    params: Mapping[str, Any] | None,
) -> list[ResolvedResource]:
    text = render(_read(path), params, source=str(path))
    resolved: list[ResolvedResource] = []
    for doc in decode_documents(text, source=str(path)):
        mapping = await index.resolve(doc["apiVersion"], doc["kind"])
        resolved.append(ResolvedResource(mapping=mapping, document=doc, source=path))
    return resolved


async def resolve_one(
    path: str | Path,
    index: DiscoveryIndex,
    params: Mapping[str, Any] | None = None,
) -> ResolvedResource:
    """Resolve a file holding exactly one resource document."""
    path = Path(path)
    if not path.exists():
        raise ResourceFileNotFoundError(f"resource file '{path}' does not exist")
    resources = await _resolve_file(path, index, params)
    if len(resources) != 1:
        raise DecodeError(f"expected exactly one resource document in '{path}', found {len(resources)}")
    return resources[0]


async def resolve_many(
    path: str | Path,
    index: DiscoveryIndex,
    params: Mapping[str, Any] | None = None,
) -> list[ResolvedResource]:
    """Resolve every resource in a file or directory, in document order."""
    resources: list[ResolvedResource] = []
    for file_path in iter_resource_files(path):
        resources.extend(await _resolve_file(file_path, index, params))
    return resources


# ---------------------------------------------------------------------------
# Context-bound entry points
# ---------------------------------------------------------------------------


async def load_resource(ctx: ClientContext, name: str | Path) -> ResolvedResource:
    """Validate *ctx* and resolve the single resource file *name* under it."""
    ctx.validate()
    return await resolve_one(ctx.resource_path(name), DiscoveryIndex(ctx.discovery), ctx.template_arguments)


async def load_resources(ctx: ClientContext, name: str | Path) -> list[ResolvedResource]:
    """Validate *ctx* and resolve every resource under *name*."""
    ctx.validate()
    return await resolve_many(ctx.resource_path(name), DiscoveryIndex(ctx.discovery), ctx.template_arguments)
