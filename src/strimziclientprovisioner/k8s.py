"""Helpers for interacting with Kubernetes APIs, and the cluster accessor
used by the bootstrap resolver and the credential provisioner.
"""

from __future__ import annotations

__all__ = (
    "ClusterAccessor",
    "KubernetesClusterAccessor",
    "LoadBalancerIngress",
    "NodeDescriptor",
    "RouteDescriptor",
    "ServiceDescriptor",
    "ServicePort",
    "create_k8sclient",
    "get_deployment",
    "get_route",
    "get_secret",
    "get_service",
    "get_statefulset",
    "list_nodes",
)

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import kubernetes
from kubernetes.client.exceptions import ApiException

from strimziclientprovisioner import config


@dataclass(frozen=True)
class ServicePort:
    """A port declared in a Service's ``spec.ports``."""

    port: int | None
    node_port: int | None = None


@dataclass(frozen=True)
class LoadBalancerIngress:
    """An entry of a Service's ``status.loadBalancer.ingress``."""

    hostname: str | None = None
    ip: str | None = None


@dataclass(frozen=True)
class ServiceDescriptor:
    """Snapshot of the parts of a Service used for bootstrap resolution."""

    name: str
    type: str
    ports: tuple[ServicePort, ...] = ()
    ingress: tuple[LoadBalancerIngress, ...] = ()

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any]) -> ServiceDescriptor:
        """Build a descriptor from a raw Service resource."""
        spec = manifest.get("spec") or {}
        status = manifest.get("status") or {}
        ports = tuple(
            ServicePort(port=p.get("port"), node_port=p.get("nodePort"))
            for p in spec.get("ports") or []
        )
        ingress = tuple(
            LoadBalancerIngress(hostname=i.get("hostname"), ip=i.get("ip"))
            for i in (status.get("loadBalancer") or {}).get("ingress") or []
        )
        return cls(
            name=manifest["metadata"]["name"],
            type=spec.get("type", "ClusterIP"),
            ports=ports,
            ingress=ingress,
        )


@dataclass(frozen=True)
class RouteDescriptor:
    """Snapshot of an OpenShift Route."""

    name: str
    ingress_host: str | None = None

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any]) -> RouteDescriptor:
        ingress = (manifest.get("status") or {}).get("ingress") or []
        host = ingress[0].get("host") if ingress else None
        return cls(name=manifest["metadata"]["name"], ingress_host=host or None)


@dataclass(frozen=True)
class NodeDescriptor:
    """Snapshot of a Node and its ``status.addresses``."""

    name: str
    addresses: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any]) -> NodeDescriptor:
        addresses = tuple(
            (a.get("type", ""), a["address"])
            for a in (manifest.get("status") or {}).get("addresses") or []
            if a.get("address")
        )
        return cls(name=manifest["metadata"]["name"], addresses=addresses)


class ClusterAccessor(Protocol):
    """Read-only, namespace-scoped view of the resources the provisioner
    needs.

    ``get_secret`` returns the Secret's ``data`` mapping (base64 values), or
    `None` if the Secret does not exist. ``get_service`` and ``get_route``
    return `None` for absent resources.
    """

    def get_secret(self, name: str) -> Mapping[str, str] | None: ...

    def get_service(self, name: str) -> ServiceDescriptor | None: ...

    def get_route(self, name: str) -> RouteDescriptor | None: ...

    def list_nodes(self) -> Sequence[NodeDescriptor]: ...

    def get_deployment(self, name: str) -> dict[str, Any] | None: ...

    def get_statefulset(self, name: str) -> dict[str, Any] | None: ...


def create_k8sclient() -> kubernetes.client:
    """Get a Kubernetes client configured with available cluster
    authentication.

    If in-cluster authentication is available, that is used. Otherwise
    this function falls-back to using a kubectl config file, which is
    appropriate for development.
    """
    try:
        kubernetes.config.load_incluster_config()
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()
    return kubernetes.client


def get_deployment(
    *,
    name: str,
    namespace: str,
    k8s_client: Any,
) -> dict[str, Any]:
    """Get a Deployment resource as a raw `dict`.

    Parameters
    ----------
    name : `str`
        The name of the Deployment.
    namespace : `str`
        The Kubernetes namespace where the Strimzi Kafka cluster operates.
    k8s_client
        A Kubernetes client (see `create_k8sclient`).
    """
    api = k8s_client.AppsV1Api()
    result = api.read_namespaced_deployment(
        name=name, namespace=namespace, _preload_content=False
    )
    return json.loads(result.data)


def get_statefulset(
    *,
    name: str,
    namespace: str,
    k8s_client: Any,
) -> dict[str, Any]:
    """Get a StatefulSet resource as a raw `dict`."""
    api = k8s_client.AppsV1Api()
    result = api.read_namespaced_stateful_set(
        name=name, namespace=namespace, _preload_content=False
    )
    return json.loads(result.data)


def get_service(
    *,
    name: str,
    namespace: str,
    k8s_client: Any,
) -> dict[str, Any]:
    """Get a Service resource as a raw `dict`.

    Parameters
    ----------
    name : `str`
        The name of the Service.
    namespace : `str`
        The Kubernetes namespace where the Strimzi Kafka cluster operates.
    k8s_client
        A Kubernetes client (see `create_k8sclient`).
    """
    api = k8s_client.CoreV1Api()
    result = api.read_namespaced_service(
        name=name, namespace=namespace, _preload_content=False
    )
    return json.loads(result.data)


def get_secret(
    *,
    name: str,
    namespace: str,
    k8s_client: Any,
) -> dict[str, Any]:
    """Get a Secret resource as a raw `dict`.

    Parameters
    ----------
    name : `str`
        The name of the Secret.
    namespace : `str`
        The Kubernetes namespace where the Strimzi Kafka cluster operates.
    k8s_client
        A Kubernetes client (see `create_k8sclient`).

    Returns
    -------
    secret
        The Kubernetes Secret resource. Values in its ``data`` field are
        base64-encoded.
    """
    api = k8s_client.CoreV1Api()
    result = api.read_namespaced_secret(
        name=name, namespace=namespace, _preload_content=False
    )
    return json.loads(result.data)


def get_route(
    *,
    name: str,
    namespace: str,
    k8s_client: Any,
) -> dict[str, Any]:
    """Get an OpenShift Route resource as a raw `dict`.

    Raises `~kubernetes.client.exceptions.ApiException` with status 404 both
    when the Route is missing and when the cluster does not serve the
    ``route.openshift.io`` API group.
    """
    api = k8s_client.CustomObjectsApi()
    result = api.get_namespaced_custom_object(
        group="route.openshift.io",
        version="v1",
        namespace=namespace,
        plural="routes",
        name=name,
        _preload_content=False,
    )
    return json.loads(result.data)


def list_nodes(*, k8s_client: Any) -> list[dict[str, Any]]:
    """List the cluster's Node resources as raw `dict` objects."""
    api = k8s_client.CoreV1Api()
    result = api.list_node(_preload_content=False)
    return json.loads(result.data).get("items") or []


def _or_none(getter: Any, **kwargs: Any) -> Any:
    try:
        return getter(**kwargs)
    except ApiException as e:
        if e.status == 404:
            return None
        raise


class KubernetesClusterAccessor:
    """`ClusterAccessor` backed by the Kubernetes API.

    Parameters
    ----------
    namespace : `str`, optional
        The namespace where the Strimzi Kafka cluster and its KafkaUsers
        live. Defaults to `strimziclientprovisioner.config.namespace`.
    k8s_client, optional
        A Kubernetes client (see `create_k8sclient`). Created on demand if
        not set.
    """

    def __init__(
        self, namespace: str | None = None, k8s_client: Any | None = None
    ) -> None:
        if namespace is None:
            namespace = config.namespace
        self.namespace = namespace
        self.k8s_client = (
            k8s_client if k8s_client is not None else create_k8sclient()
        )

    def get_secret(self, name: str) -> Mapping[str, str] | None:
        secret = _or_none(
            get_secret,
            name=name,
            namespace=self.namespace,
            k8s_client=self.k8s_client,
        )
        if secret is None:
            return None
        return secret.get("data") or {}

    def get_service(self, name: str) -> ServiceDescriptor | None:
        service = _or_none(
            get_service,
            name=name,
            namespace=self.namespace,
            k8s_client=self.k8s_client,
        )
        if service is None:
            return None
        return ServiceDescriptor.from_manifest(service)

    def get_route(self, name: str) -> RouteDescriptor | None:
        route = _or_none(
            get_route,
            name=name,
            namespace=self.namespace,
            k8s_client=self.k8s_client,
        )
        if route is None:
            return None
        return RouteDescriptor.from_manifest(route)

    def list_nodes(self) -> list[NodeDescriptor]:
        return [
            NodeDescriptor.from_manifest(node)
            for node in list_nodes(k8s_client=self.k8s_client)
        ]

    def get_deployment(self, name: str) -> dict[str, Any] | None:
        return _or_none(
            get_deployment,
            name=name,
            namespace=self.namespace,
            k8s_client=self.k8s_client,
        )

    def get_statefulset(self, name: str) -> dict[str, Any] | None:
        return _or_none(
            get_statefulset,
            name=name,
            namespace=self.namespace,
            k8s_client=self.k8s_client,
        )
