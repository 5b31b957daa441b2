"""Resource handles, retry policy and the closed token sets."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kubeassert.errors import UnsupportedOperationError, ValidationError

DEFAULT_MAX_ATTEMPTS: int = 40
DEFAULT_INTERVAL_S: float = 30.0


class Operation(StrEnum):
    """Mutations the dispatcher knows how to apply."""

    CREATE = "create"
    SUBMIT = "submit"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, token: str | Operation) -> Operation:
        """Return the member for *token*; anything else is unsupported."""
        if isinstance(token, Operation):
            return token
        try:
            return cls(token)
        except ValueError:
            raise UnsupportedOperationError(f"unsupported operation: {token}") from None

    @property
    def canonical(self) -> Operation:
        """``submit`` is an alias of ``create``."""
        return Operation.CREATE if self is Operation.SUBMIT else self


class ExistenceState(StrEnum):
    """Target states for the existence poll."""

    CREATED = "created"
    DELETED = "deleted"


class PollOutcome(StrEnum):
    """Non-fatal results of a poll predicate.  Fatal results are raised."""

    SATISFIED = "satisfied"
    RETRY = "retry"


class RetryPolicy(BaseModel):
    """Bounded retry budget for convergence polling.

    Attributes:
        max_attempts: Number of fetches before giving up.  Defaults to 40.
        interval: Seconds to sleep between attempts.  Defaults to 30.0.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    interval: float = Field(default=DEFAULT_INTERVAL_S, ge=0.0)


@dataclass(frozen=True)
class ResourceMapping:
    """Binding between a kind/group/version and its REST endpoint.

    ``api_resource`` is the discovery handle the dynamic client needs to
    address the endpoint; it is excluded from equality.
    """

    kind: str
    group_version: str
    resource_name: str
    namespaced: bool
    api_resource: Any = field(default=None, compare=False, repr=False)


@dataclass
class ResolvedResource:
    """A decoded resource document with its discovered mapping."""

    mapping: ResourceMapping
    document: dict[str, Any]
    source: Path | None = None

    @property
    def metadata(self) -> dict[str, Any]:
        meta = self.document.get("metadata")
        return meta if isinstance(meta, dict) else {}

    @property
    def api_version(self) -> str:
        return str(self.document.get("apiVersion", ""))

    @property
    def kind(self) -> str:
        return str(self.document.get("kind", ""))

    @property
    def name(self) -> str:
        return str(self.metadata.get("name", ""))

    @property
    def namespace(self) -> str:
        """Embedded namespace, or ``""`` when the document carries none."""
        return str(self.metadata.get("namespace") or "")

    @property
    def labels(self) -> dict[str, str]:
        labels = self.metadata.get("labels")
        return dict(labels) if isinstance(labels, dict) else {}

    def target_namespace(self, override: str = "") -> str | None:
        """Namespace to address the resource in.

        A non-empty *override* wins over the embedded namespace.  Cluster
        scoped resources are always addressed without a namespace.

        Raises:
            ValidationError: if a namespaced resource has neither an
                override nor an embedded namespace.
        """
        if not self.mapping.namespaced:
            return None
        target = override or self.namespace
        if not target:
            raise ValidationError(
                f"namespace is required for namespaced {self.api_version}/{self.kind} '{self.name}'; "
                "set metadata.namespace or pass a namespace"
            )
        return target
