"""Typed views of the Strimzi-managed secrets consumed by the provisioner.

Strimzi stores the cluster CA and KafkaUser credentials in Secrets whose
``data`` values are base64-encoded. Each record here is decoded and validated
once, when it is read from the cluster accessor.
"""

from __future__ import annotations

__all__ = (
    "ClusterCaSecret",
    "UserScramSecret",
    "UserTlsSecret",
    "cluster_ca_secret_name",
    "read_cluster_ca_secret",
    "read_user_scram_secret",
    "read_user_tls_secret",
)

import base64
import binascii
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from strimziclientprovisioner.errors import (
    MissingTrustMaterial,
    MissingUserSecret,
)
from strimziclientprovisioner.k8s import ClusterAccessor


@dataclass(frozen=True)
class ClusterCaSecret:
    """The PKCS12 truststore published in ``<cluster>-cluster-ca-cert``."""

    truststore: bytes = field(repr=False)
    password: str = field(repr=False)


@dataclass(frozen=True)
class UserTlsSecret:
    """Certificates and key of a KafkaUser with TLS authentication."""

    ca_cert: str = field(repr=False)
    user_cert: str = field(repr=False)
    user_key: str = field(repr=False)


@dataclass(frozen=True)
class UserScramSecret:
    """Password of a KafkaUser with SCRAM-SHA-512 authentication."""

    password: str = field(repr=False)


def cluster_ca_secret_name(cluster_name: str) -> str:
    return f"{cluster_name}-cluster-ca-cert"


def _require(
    data: Mapping[str, str],
    key: str,
    *,
    secret_name: str,
    error: type[MissingTrustMaterial] | type[MissingUserSecret],
) -> bytes:
    value = data.get(key)
    if not value:
        raise error(secret_name, key)
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as e:
        raise error(secret_name, key) from e


def _require_text(
    data: Mapping[str, str],
    key: str,
    *,
    secret_name: str,
    error: type[MissingTrustMaterial] | type[MissingUserSecret],
) -> str:
    value = _require(data, key, secret_name=secret_name, error=error)
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise error(secret_name, key) from e


def read_cluster_ca_secret(
    cluster_name: str,
    *,
    accessor: ClusterAccessor,
    logger: Any | None = None,
) -> ClusterCaSecret:
    """Read the cluster CA truststore and its password.

    Raises
    ------
    strimziclientprovisioner.errors.MissingTrustMaterial
        Raised if the secret does not exist, or lacks ``ca.p12`` or
        ``ca.password``.
    """
    if logger is None:
        logger = structlog.getLogger(__name__)

    name = cluster_ca_secret_name(cluster_name)
    data = accessor.get_secret(name)
    if data is None:
        raise MissingTrustMaterial(name)
    logger.info(f"Retrieved cluster CA secret {name}")

    truststore = _require(
        data, "ca.p12", secret_name=name, error=MissingTrustMaterial
    )
    password = _require_text(
        data, "ca.password", secret_name=name, error=MissingTrustMaterial
    )
    return ClusterCaSecret(truststore=truststore, password=password)


def read_user_tls_secret(
    username: str,
    *,
    accessor: ClusterAccessor,
    logger: Any | None = None,
) -> UserTlsSecret:
    """Read the PEM certificates and private key of a TLS KafkaUser.

    Raises
    ------
    strimziclientprovisioner.errors.MissingUserSecret
        Raised if the secret does not exist, or lacks ``ca.crt``,
        ``user.crt`` or ``user.key``.
    """
    if logger is None:
        logger = structlog.getLogger(__name__)

    data = accessor.get_secret(username)
    if data is None:
        raise MissingUserSecret(username)
    logger.info(f"Retrieved KafkaUser client secret {username}")

    fields = {
        key: _require_text(
            data, key, secret_name=username, error=MissingUserSecret
        )
        for key in ("ca.crt", "user.crt", "user.key")
    }
    return UserTlsSecret(
        ca_cert=fields["ca.crt"],
        user_cert=fields["user.crt"],
        user_key=fields["user.key"],
    )


def read_user_scram_secret(
    username: str,
    *,
    accessor: ClusterAccessor,
    logger: Any | None = None,
) -> UserScramSecret:
    """Read the SCRAM password of a KafkaUser.

    Raises
    ------
    strimziclientprovisioner.errors.MissingUserSecret
        Raised if the secret does not exist or lacks ``password``.
    """
    if logger is None:
        logger = structlog.getLogger(__name__)

    data = accessor.get_secret(username)
    if data is None:
        raise MissingUserSecret(username)
    logger.info(f"Retrieved KafkaUser SCRAM secret {username}")

    password = _require_text(
        data, "password", secret_name=username, error=MissingUserSecret
    )
    return UserScramSecret(password=password)
