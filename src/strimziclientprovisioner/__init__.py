"""Kafka client configuration and credentials for Strimzi test clients."""

__all__ = ("__version__",)

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("strimzi-client-provisioner")
except PackageNotFoundError:
    __version__ = "unknown"
