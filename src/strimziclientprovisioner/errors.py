"""Exceptions raised while resolving bootstrap addresses and provisioning
client credentials.

All of these are subclasses of `kopf.PermanentError`: a missing secret or an
unreachable cluster is a setup defect, so handlers that call into this
package should not retry.
"""

__all__ = (
    "ArtifactBuildFailure",
    "EndpointUnavailable",
    "MissingTrustMaterial",
    "MissingUserSecret",
    "ProvisioningError",
)

import kopf


class ProvisioningError(kopf.PermanentError):
    """Base class for client provisioning errors."""


class EndpointUnavailable(ProvisioningError):
    """No exposure mechanism yields a reachable bootstrap address."""

    def __init__(self, cluster_name: str, reason: str) -> None:
        self.cluster_name = cluster_name
        self.reason = reason
        super().__init__(
            f"Kafka cluster {cluster_name} has no usable external bootstrap "
            f"address: {reason}"
        )


class _MissingSecretMaterial(ProvisioningError):
    kind = "secret"

    def __init__(self, secret_name: str, key: str | None = None) -> None:
        self.secret_name = secret_name
        self.key = key
        if key is None:
            message = f"{self.kind} {secret_name} does not exist"
        else:
            message = f"{self.kind} {secret_name} is missing the {key} key"
        super().__init__(message)


class MissingTrustMaterial(_MissingSecretMaterial):
    """The cluster CA secret, or its truststore fields, is missing."""

    kind = "Cluster CA secret"


class MissingUserSecret(_MissingSecretMaterial):
    """The KafkaUser secret, or one of its required fields, is missing."""

    kind = "KafkaUser secret"


class ArtifactBuildFailure(ProvisioningError):
    """A keystore could not be built from the user's PEM material."""
