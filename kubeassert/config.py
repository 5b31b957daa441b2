"""Environment variable configuration loading.

Every setting is read from a ``KUBEASSERT_*`` variable.  Numeric settings
are clamped to sane bounds; unparsable numbers fall back to the default.
An unknown log level is rejected with ``ValueError``.
"""

from __future__ import annotations

import os
from pathlib import Path

from kubeassert.models.config import KubeAssertConfig, LogConfig, WaiterConfig
from kubeassert.models.resources import DEFAULT_INTERVAL_S, DEFAULT_MAX_ATTEMPTS
from kubeassert.observability.logging import VALID_LOG_LEVELS, get_logger

_log = get_logger("config")

_TRUTHY = frozenset({"1", "true", "yes", "on"})

_TRIES_MIN, _TRIES_MAX = 1, 10_000
_INTERVAL_MIN_S, _INTERVAL_MAX_S = 0.0, 3600.0


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        _log.warning("invalid_int_env", var=name, value=raw, default=default)
        return default
    return max(lo, min(hi, value))


def _env_float(name: str, default: float, lo: float, hi: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        _log.warning("invalid_float_env", var=name, value=raw, default=default)
        return default
    return max(lo, min(hi, value))


def default_kubeconfig_path() -> str:
    """``$KUBECONFIG`` if exported, else ``~/.kube/config``."""
    exported = os.environ.get("KUBECONFIG", "")
    if exported:
        return exported
    return str(Path.home() / ".kube" / "config")


def load_config() -> KubeAssertConfig:
    """Build a :class:`KubeAssertConfig` from the process environment."""
    level = os.environ.get("KUBEASSERT_LOG_LEVEL", "info").strip().lower()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}; expected one of {sorted(VALID_LOG_LEVELS)}")

    return KubeAssertConfig(
        files_path=os.environ.get("KUBEASSERT_FILES_PATH", "").strip() or "templates",
        kubeconfig=default_kubeconfig_path(),
        waiter=WaiterConfig(
            tries=_env_int("KUBEASSERT_WAITER_TRIES", DEFAULT_MAX_ATTEMPTS, _TRIES_MIN, _TRIES_MAX),
            interval_seconds=_env_float(
                "KUBEASSERT_WAITER_INTERVAL", DEFAULT_INTERVAL_S, _INTERVAL_MIN_S, _INTERVAL_MAX_S
            ),
        ),
        log=LogConfig(level=level, json_output=_env_bool("KUBEASSERT_LOG_JSON", True)),
    )
