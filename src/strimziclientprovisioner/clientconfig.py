"""Kafka client configurations for connecting test clients to a Strimzi
Kafka cluster, with truststores and keystores built from the Secrets that
Strimzi manages for the cluster and its KafkaUsers.
"""

from __future__ import annotations

__all__ = (
    "ClientConfiguration",
    "SecurityProtocol",
    "create_client_configuration",
    "create_consumer_configuration",
    "create_producer_configuration",
    "format_scram_jaas_config",
)

import random
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import ExitStack
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import Any

import structlog

from strimziclientprovisioner import config
from strimziclientprovisioner.bootstrap import get_external_bootstrap_address
from strimziclientprovisioner.k8s import ClusterAccessor
from strimziclientprovisioner.keystores import (
    KeystoreBuilder,
    generate_password,
    get_keystore_builder,
)
from strimziclientprovisioner.secretdata import (
    read_cluster_ca_secret,
    read_user_scram_secret,
    read_user_tls_secret,
)

BOOTSTRAP_SERVERS = "bootstrap.servers"
SECURITY_PROTOCOL = "security.protocol"
CLIENT_ID = "client.id"
SSL_ENDPOINT_IDENTIFICATION_ALGORITHM = "ssl.endpoint.identification.algorithm"
SSL_TRUSTSTORE_LOCATION = "ssl.truststore.location"
SSL_TRUSTSTORE_PASSWORD = "ssl.truststore.password"
SSL_TRUSTSTORE_TYPE = "ssl.truststore.type"
SSL_KEYSTORE_LOCATION = "ssl.keystore.location"
SSL_KEYSTORE_PASSWORD = "ssl.keystore.password"
SSL_KEYSTORE_TYPE = "ssl.keystore.type"
SASL_MECHANISM = "sasl.mechanism"
SASL_JAAS_CONFIG = "sasl.jaas.config"

STORE_TYPE = "PKCS12"
SCRAM_MECHANISM = "SCRAM-SHA-512"

_STRING_SERIALIZER = "org.apache.kafka.common.serialization.StringSerializer"
_STRING_DESERIALIZER = (
    "org.apache.kafka.common.serialization.StringDeserializer"
)


class SecurityProtocol(str, Enum):
    """Security protocols supported for test clients."""

    PLAINTEXT = "PLAINTEXT"
    SSL = "SSL"
    SASL_SSL = "SASL_SSL"


class ClientConfiguration(Mapping[str, str]):
    """Read-only Kafka client properties, together with the temporary
    directory holding the truststore and keystore they point to.

    Use it as a context manager, or call `close`, to delete the credential
    files once the client is done with them. If neither happens the
    directory is removed when the configuration is garbage collected or the
    interpreter exits.
    """

    def __init__(
        self,
        properties: Mapping[str, str],
        workdir: tempfile.TemporaryDirectory | None = None,
    ) -> None:
        self._properties = dict(properties)
        self._workdir = workdir

    def __getitem__(self, key: str) -> str:
        return self._properties[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(keys={list(self._properties)!r})"

    def __enter__(self) -> ClientConfiguration:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def workdir(self) -> Path | None:
        """Directory of the credential files, if any."""
        if self._workdir is None:
            return None
        return Path(self._workdir.name)

    def close(self) -> None:
        """Delete the credential files.

        Configurations derived with `with_properties` share the same
        directory, so closing any of them closes all of them.
        """
        if self._workdir is not None:
            self._workdir.cleanup()

    def with_properties(
        self, properties: Mapping[str, str]
    ) -> ClientConfiguration:
        """Get a new configuration with ``properties`` merged on top."""
        return ClientConfiguration(
            {**self._properties, **properties}, workdir=self._workdir
        )

    def to_properties(self) -> str:
        """Render the configuration in Java ``.properties`` format, for
        command-line Kafka tools.
        """
        lines = []
        for key, value in self._properties.items():
            escaped = value.replace("\\", "\\\\").replace("\n", "\\n")
            lines.append(f"{key}={escaped}")
        return "\n".join(lines) + "\n"


def format_scram_jaas_config(username: str, password: str) -> str:
    """Format the ``sasl.jaas.config`` value for SCRAM authentication."""
    return (
        "org.apache.kafka.common.security.scram.ScramLoginModule required "
        f'username="{username}" password="{password}";'
    )


def create_client_configuration(
    *,
    accessor: ClusterAccessor,
    cluster_name: str | None = None,
    username: str = "",
    security_protocol: SecurityProtocol | str = SecurityProtocol.PLAINTEXT,
    bootstrap_server: str | None = None,
    keystore_builder: KeystoreBuilder | None = None,
    tmpdir: str | Path | None = None,
    logger: Any | None = None,
) -> ClientConfiguration:
    """Create the client properties shared by Kafka producers and consumers.

    The cluster CA truststore is always written and configured, with
    hostname verification turned off. Client authentication depends on
    ``username`` and ``security_protocol``:

    - ``SASL_SSL`` with a username: SCRAM-SHA-512 with the password from the
      KafkaUser secret.
    - any other protocol with a username: mutual TLS with a keystore built
      from the KafkaUser secret.
    - no username: no client authentication.

    Parameters
    ----------
    accessor : `strimziclientprovisioner.k8s.ClusterAccessor`
        Read access to the namespace of the cluster and its KafkaUsers.
    cluster_name : `str`, optional
        The name of the Strimzi Kafka cluster. Defaults to
        `strimziclientprovisioner.config.cluster_name`.
    username : `str`, optional
        Name of the KafkaUser (and of its Secret). Empty for an anonymous
        client.
    security_protocol : `SecurityProtocol` or `str`, optional
        One of ``PLAINTEXT``, ``SSL`` or ``SASL_SSL``.
    bootstrap_server : `str`, optional
        The ``host:port`` of the bootstrap server. If not set, the external
        bootstrap address is resolved for you (see
        `strimziclientprovisioner.bootstrap.get_external_bootstrap_address`).
    keystore_builder : optional
        Builder for the mutual TLS keystore. Defaults to the builder named
        by `strimziclientprovisioner.config.keystore_builder`.
    tmpdir : `str` or `pathlib.Path`, optional
        Parent of the temporary directory for the truststore and keystore.
        Defaults to `strimziclientprovisioner.config.tmpdir`.
    logger : optional
        Logger to use for logging messages. If not provided, a default logger
        will be used.

    Returns
    -------
    configuration : `ClientConfiguration`
        The client properties. Nothing is left on disk if an error is raised.

    Raises
    ------
    ValueError
        Raised if ``cluster_name`` is empty or ``security_protocol`` is not
        supported.
    strimziclientprovisioner.errors.EndpointUnavailable
        Raised if ``bootstrap_server`` is not set and cannot be resolved.
    strimziclientprovisioner.errors.MissingTrustMaterial
        Raised if the cluster CA secret or its truststore is missing.
    strimziclientprovisioner.errors.MissingUserSecret
        Raised if the KafkaUser secret or one of its required keys is
        missing.
    strimziclientprovisioner.errors.ArtifactBuildFailure
        Raised if the keystore cannot be built.
    """
    if cluster_name is None:
        cluster_name = config.cluster_name
    if not cluster_name:
        raise ValueError("cluster_name must not be empty")
    protocol = SecurityProtocol(security_protocol)
    if logger is None:
        logger = structlog.getLogger(__name__)

    if bootstrap_server is None:
        bootstrap_server = get_external_bootstrap_address(
            cluster_name, accessor=accessor, logger=logger
        )

    # Read every secret before anything is written to disk
    cluster_ca = read_cluster_ca_secret(
        cluster_name, accessor=accessor, logger=logger
    )
    scram_secret = None
    tls_secret = None
    if username and protocol is SecurityProtocol.SASL_SSL:
        scram_secret = read_user_scram_secret(
            username, accessor=accessor, logger=logger
        )
    elif username:
        tls_secret = read_user_tls_secret(
            username, accessor=accessor, logger=logger
        )
        if keystore_builder is None:
            keystore_builder = get_keystore_builder(logger=logger)
    else:
        logger.info("No username given, not configuring client authentication")

    properties = {
        BOOTSTRAP_SERVERS: bootstrap_server,
        SECURITY_PROTOCOL: protocol.value,
        # Turns off hostname verification
        SSL_ENDPOINT_IDENTIFICATION_ALGORITHM: "",
    }

    with ExitStack() as stack:
        workdir = tempfile.TemporaryDirectory(
            prefix="strimzi-client-", dir=tmpdir or config.tmpdir
        )
        stack.callback(workdir.cleanup)
        workdir_path = Path(workdir.name)

        truststore_path = workdir_path / "ca.truststore.p12"
        truststore_path.write_bytes(cluster_ca.truststore)
        properties[SSL_TRUSTSTORE_TYPE] = STORE_TYPE
        properties[SSL_TRUSTSTORE_PASSWORD] = cluster_ca.password
        properties[SSL_TRUSTSTORE_LOCATION] = str(truststore_path)

        if scram_secret is not None:
            properties[SASL_MECHANISM] = SCRAM_MECHANISM
            properties[SASL_JAAS_CONFIG] = format_scram_jaas_config(
                username, scram_secret.password
            )
            logger.info(f"Configured SCRAM authentication for {username}")
        elif tls_secret is not None and keystore_builder is not None:
            keystore_password = generate_password()
            keystore_path = keystore_builder.build_keystore(
                ca_cert=tls_secret.ca_cert,
                user_cert=tls_secret.user_cert,
                user_key=tls_secret.user_key,
                password=keystore_password,
                output_path=workdir_path / "user.keystore.p12",
                alias=username,
            )
            properties[SSL_KEYSTORE_TYPE] = STORE_TYPE
            properties[SSL_KEYSTORE_PASSWORD] = keystore_password
            properties[SSL_KEYSTORE_LOCATION] = str(keystore_path)
            logger.info(f"Configured TLS authentication for {username}")

        # Keep the directory now that the configuration is complete
        stack.pop_all()

    logger.info(
        f"Created {protocol.value} client configuration for cluster "
        f"{cluster_name}"
    )
    return ClientConfiguration(properties, workdir=workdir)


def create_producer_configuration(
    *,
    accessor: ClusterAccessor,
    cluster_name: str | None = None,
    username: str = "",
    security_protocol: SecurityProtocol | str = SecurityProtocol.PLAINTEXT,
    **kwargs: Any,
) -> ClientConfiguration:
    """Create the properties of a Kafka producer with string keys and
    values.

    Keyword arguments are passed to `create_client_configuration`.
    """
    shared = create_client_configuration(
        cluster_name=cluster_name,
        accessor=accessor,
        username=username,
        security_protocol=security_protocol,
        **kwargs,
    )
    return shared.with_properties(
        {
            "key.serializer": _STRING_SERIALIZER,
            "value.serializer": _STRING_SERIALIZER,
            "max.block.ms": "1000",
            CLIENT_ID: f"{username}-producer",
            "acks": "all",
        }
    )


def create_consumer_configuration(
    *,
    accessor: ClusterAccessor,
    cluster_name: str | None = None,
    username: str = "",
    security_protocol: SecurityProtocol | str = SecurityProtocol.PLAINTEXT,
    group_id: str | None = None,
    **kwargs: Any,
) -> ClientConfiguration:
    """Create the properties of a Kafka consumer with string keys and
    values that reads topics from the earliest offset.

    Parameters
    ----------
    group_id : `str`, optional
        The consumer group. Defaults to a random ``my-group-<n>`` name.
    **kwargs
        Passed to `create_client_configuration`.
    """
    if group_id is None:
        group_id = f"my-group-{random.randint(0, 2**31 - 1)}"

    shared = create_client_configuration(
        cluster_name=cluster_name,
        accessor=accessor,
        username=username,
        security_protocol=security_protocol,
        **kwargs,
    )
    return shared.with_properties(
        {
            "group.id": group_id,
            "key.deserializer": _STRING_DESERIALIZER,
            "value.deserializer": _STRING_DESERIALIZER,
            CLIENT_ID: f"{username}-consumer",
            "auto.offset.reset": "earliest",
        }
    )
