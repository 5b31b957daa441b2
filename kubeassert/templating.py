"""Parameter substitution into resource documents.

Documents are rendered with Jinja2 only when parameters are supplied, so
manifests that carry their own ``{{ }}`` syntax (Argo templates, Helm
snippets) load untouched when the suite passes no arguments.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError as JinjaTemplateError

from kubeassert.errors import TemplateError
from kubeassert.observability.logging import get_logger

_log = get_logger("templating")

_GENERATED_SUFFIX = "_generated"

_env = Environment(
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


@dataclass(frozen=True)
class TemplateArgument:
    """A template parameter sourced from an environment variable."""

    key: str
    environment_variable: str
    mandatory: bool = False
    default: str = ""


def template_arguments_to_map(*args: TemplateArgument) -> dict[str, str]:
    """Resolve *args* against the environment.

    Raises:
        TemplateError: if a mandatory variable is unset.
    """
    resolved: dict[str, str] = {}
    for arg in args:
        value = os.environ.get(arg.environment_variable, "")
        if not value:
            if arg.mandatory:
                raise TemplateError(f"environment variable {arg.environment_variable!r} is mandatory but unset")
            value = arg.default
        resolved[arg.key] = value
    return resolved


def render(text: str, params: Mapping[str, Any] | None, source: str = "<string>") -> str:
    """Substitute *params* into *text*.  With no params *text* is returned as is."""
    if not params:
        return text
    try:
        return _env.from_string(text).render(**params)
    except JinjaTemplateError as exc:
        raise TemplateError(f"failed to render {source}: {exc}") from exc


def generate_file_from_template(path: str | Path, params: Mapping[str, Any]) -> Path:
    """Render the template at *path* and write it next to the original.

    ``templates/pod.yaml`` is written to ``templates/pod_generated.yaml``.
    Returns the path of the generated file.
    """
    src = Path(path)
    try:
        text = src.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise TemplateError(f"template {src} does not exist") from exc
    out = src.with_name(f"{src.stem}{_GENERATED_SUFFIX}{src.suffix}")
    out.write_text(render(text, params, source=str(src)), encoding="utf-8")
    _log.info("template_generated", template=str(src), output=str(out))
    return out
