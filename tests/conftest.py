"""Shared fixtures: an in-memory cluster accessor and test certificates."""

from __future__ import annotations

import base64
import datetime
from collections.abc import Callable, Mapping
from typing import Any

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from strimziclientprovisioner.k8s import (
    NodeDescriptor,
    RouteDescriptor,
    ServiceDescriptor,
)


class FakeClusterAccessor:
    """A ClusterAccessor serving resources from parsed manifests."""

    def __init__(self, manifests: list[dict[str, Any]]) -> None:
        self.resources: dict[tuple[str, str], dict[str, Any]] = {}
        self.nodes: list[dict[str, Any]] = []
        self.secret_reads: list[str] = []
        for manifest in manifests:
            self.add(manifest)

    @classmethod
    def from_yaml(cls, text: str) -> FakeClusterAccessor:
        return cls([m for m in yaml.safe_load_all(text) if m])

    def add(self, manifest: dict[str, Any]) -> None:
        if manifest["kind"] == "Node":
            self.nodes.append(manifest)
        else:
            key = (manifest["kind"], manifest["metadata"]["name"])
            self.resources[key] = manifest

    def get_secret(self, name: str) -> Mapping[str, str] | None:
        self.secret_reads.append(name)
        secret = self.resources.get(("Secret", name))
        if secret is None:
            return None
        return dict(secret.get("data") or {})

    def get_service(self, name: str) -> ServiceDescriptor | None:
        service = self.resources.get(("Service", name))
        if service is None:
            return None
        return ServiceDescriptor.from_manifest(service)

    def get_route(self, name: str) -> RouteDescriptor | None:
        route = self.resources.get(("Route", name))
        if route is None:
            return None
        return RouteDescriptor.from_manifest(route)

    def list_nodes(self) -> list[NodeDescriptor]:
        return [NodeDescriptor.from_manifest(node) for node in self.nodes]

    def get_deployment(self, name: str) -> dict[str, Any] | None:
        return self.resources.get(("Deployment", name))

    def get_statefulset(self, name: str) -> dict[str, Any] | None:
        return self.resources.get(("StatefulSet", name))


def b64(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def secret_manifest(name: str, data: Mapping[str, bytes | str]) -> dict:
    """Build a Secret manifest, base64-encoding the values."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "labels": {"strimzi.io/cluster": "events"}},
        "type": "Opaque",
        "data": {key: b64(value) for key, value in data.items()},
    }


@pytest.fixture
def make_accessor() -> Callable[[str | list[dict]], FakeClusterAccessor]:
    """Factory for an in-memory accessor, from a YAML document stream or a
    list of parsed manifests.
    """

    def make(manifests: str | list[dict]) -> FakeClusterAccessor:
        if isinstance(manifests, str):
            return FakeClusterAccessor.from_yaml(manifests)
        return FakeClusterAccessor(manifests)

    return make


@pytest.fixture
def make_secret() -> Callable[[str, Mapping[str, bytes | str]], dict]:
    """Factory for Secret manifests with base64-encoded data."""
    return secret_manifest


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "io.strimzi"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def _pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


@pytest.fixture(scope="session")
def clients_ca() -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name("clients-ca v0"))
        .issuer_name(_name("clients-ca v0"))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(
            x509.BasicConstraints(ca=True, path_length=None), critical=True
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return cert, key


@pytest.fixture(scope="session")
def user_ca_cert(clients_ca: tuple) -> str:
    return _pem(clients_ca[0])


@pytest.fixture(scope="session")
def user_credentials(clients_ca: tuple) -> tuple[str, str]:
    """PEM certificate and PKCS8 private key of a KafkaUser named my-user."""
    ca_cert, ca_key = clients_ca
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "my-user")])
        )
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                ca_key.public_key()
            ),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("utf-8")
    return _pem(cert), key_pem


@pytest.fixture(scope="session")
def cluster_truststore(clients_ca: tuple) -> tuple[bytes, str]:
    """A PKCS12 truststore and its password, as published by Strimzi in
    ``<cluster>-cluster-ca-cert``.
    """
    password = "ts-password"
    content = pkcs12.serialize_key_and_certificates(
        name=None,
        key=None,
        cert=None,
        cas=[clients_ca[0]],
        encryption_algorithm=serialization.BestAvailableEncryption(
            password.encode("utf-8")
        ),
    )
    return content, password


@pytest.fixture
def cluster_ca_secret(cluster_truststore: tuple[bytes, str]) -> dict:
    truststore, password = cluster_truststore
    return secret_manifest(
        "events-cluster-ca-cert",
        {"ca.p12": truststore, "ca.password": password, "ca.crt": "unused"},
    )


@pytest.fixture
def tls_user_secret(user_ca_cert: str, user_credentials: tuple) -> dict:
    user_cert, user_key = user_credentials
    return secret_manifest(
        "my-user",
        {
            "ca.crt": user_ca_cert,
            "user.crt": user_cert,
            "user.key": user_key,
            "user.password": "unused",
        },
    )


@pytest.fixture
def scram_user_secret() -> dict:
    return secret_manifest("my-scram-user", {"password": "hunter2"})
