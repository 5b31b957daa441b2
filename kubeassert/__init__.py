"""kubeassert - Kubernetes resource assertions for end-to-end test suites."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kubeassert")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
