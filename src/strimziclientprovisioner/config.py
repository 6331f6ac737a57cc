"""Settings read from the environment, as module-level attributes."""

import os

namespace = os.environ.get("STRIMZI_NAMESPACE", "kafka")
"""The Kubernetes namespace of the Strimzi Kafka cluster and its users."""

cluster_name = os.environ.get("STRIMZI_CLUSTER_NAME", "my-cluster")
"""The name of the Strimzi Kafka cluster."""

keystore_builder = os.environ.get("STRIMZI_KEYSTORE_BUILDER", "cryptography")
"""Name of the keystore builder used for mutual TLS clients, either
``cryptography`` (in-process) or ``openssl`` (external command).
"""

openssl_executable = os.environ.get("STRIMZI_OPENSSL", "openssl")
"""The openssl command used by the ``openssl`` keystore builder."""

tmpdir: str | None = os.environ.get("STRIMZI_CLIENT_TMPDIR") or None
"""Parent directory for per-client credential directories. `None` uses the
system default temporary directory.
"""
