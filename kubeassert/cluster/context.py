"""Client context shared by every assertion in a test session.

Holds the three remote-access handles together with the resource root,
template arguments, retry policy and named timestamps.  Built once per
session by :func:`kubeassert.cluster.bootstrap.connect` (or by a test
harness directly) and treated as read-only afterwards, apart from the
timestamp map.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from kubeassert.errors import ValidationError
from kubeassert.models.resources import RetryPolicy
from kubeassert.observability.logging import get_logger

_log = get_logger("context")

_DEFAULT_FILES_PATH = "templates"
_BOOTSTRAP_HINT = "call kubeassert.cluster.bootstrap.connect() before using this method"


@dataclass
class ClientContext:
    """Aggregate of the typed, dynamic and discovery handles.

    Attributes:
        kube_api:           Typed client access (a kubernetes_asyncio
                            ``ApiClient``); used by kind-specific helpers.
        dynamic:            kubernetes_asyncio ``DynamicClient``.
        discovery:          Discoverer mapping apiVersion/kind to an API
                            resource (``dynamic.resources`` by default).
        files_path:         Root directory that resource file names are
                            resolved against.
        template_arguments: Parameters substituted into resource documents.
        retry:              Retry budget for convergence polls.
        timestamps:         Named wall-clock instants recorded by steps.
    """

    kube_api: Any = None
    dynamic: Any = None
    discovery: Any = None
    files_path: str = _DEFAULT_FILES_PATH
    template_arguments: dict[str, Any] | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    timestamps: dict[str, datetime] = field(default_factory=dict)

    def validate(self) -> None:
        """Fail fast if any remote-access handle is missing."""
        if self.dynamic is None:
            raise ValidationError(f"'ClientContext.dynamic' is not set; {_BOOTSTRAP_HINT}")
        if self.discovery is None:
            raise ValidationError(f"'ClientContext.discovery' is not set; {_BOOTSTRAP_HINT}")
        if self.kube_api is None:
            raise ValidationError(f"'ClientContext.kube_api' is not set; {_BOOTSTRAP_HINT}")

    def resource_path(self, name: str | Path) -> Path:
        """Resolve a resource file name against :attr:`files_path`."""
        candidate = Path(name)
        if candidate.is_absolute():
            return candidate
        return Path(self.files_path or _DEFAULT_FILES_PATH) / candidate

    def set_timestamp(self, key: str) -> datetime:
        now = datetime.now(UTC)
        self.timestamps[key] = now
        _log.info("timestamp_recorded", key=key, at=now.isoformat())
        return now

    def get_timestamp(self, key: str) -> datetime:
        """Return the instant recorded under *key*.

        Raises:
            KeyError: if nothing was recorded under *key*.
        """
        return self.timestamps[key]
