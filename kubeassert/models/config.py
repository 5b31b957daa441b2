"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from kubeassert.models.resources import DEFAULT_INTERVAL_S, DEFAULT_MAX_ATTEMPTS, RetryPolicy


@dataclass(frozen=True)
class WaiterConfig:
    """Retry budget applied to every convergence poll."""

    tries: int = DEFAULT_MAX_ATTEMPTS
    interval_seconds: float = DEFAULT_INTERVAL_S


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"
    json_output: bool = True


@dataclass(frozen=True)
class KubeAssertConfig:
    """Top-level configuration, loaded from ``KUBEASSERT_*`` env vars."""

    files_path: str = "templates"
    kubeconfig: str = ""
    waiter: WaiterConfig = field(default_factory=WaiterConfig)
    log: LogConfig = field(default_factory=LogConfig)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.waiter.tries, interval=self.waiter.interval_seconds)
