"""Prometheus metrics for kubeassert."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Dispatch metrics
operations_total = Counter(
    "kubeassert_operations_total",
    "Total resource operations dispatched",
    ["operation", "result"],
)

# Poll metrics
poll_attempts_total = Counter(
    "kubeassert_poll_attempts_total",
    "Total convergence poll attempts",
    ["predicate"],
)

poll_timeouts_total = Counter(
    "kubeassert_poll_timeouts_total",
    "Total convergence polls that exhausted their retry budget",
    ["predicate"],
)

poll_duration_seconds = Histogram(
    "kubeassert_poll_duration_seconds",
    "Wall-clock duration of a convergence poll in seconds",
    ["predicate"],
    buckets=(0.1, 1.0, 5.0, 30.0, 60.0, 300.0, 900.0, 1800.0),
)
