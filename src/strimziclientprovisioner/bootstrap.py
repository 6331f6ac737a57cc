"""Resolution of the bootstrap server address of a Strimzi Kafka cluster."""

from __future__ import annotations

__all__ = (
    "external_bootstrap_service_name",
    "get_external_bootstrap_address",
    "get_internal_bootstrap_address",
    "route_name",
)

from typing import Any

import structlog

from strimziclientprovisioner.errors import EndpointUnavailable
from strimziclientprovisioner.k8s import ClusterAccessor, ServiceDescriptor

ROUTE_PORT = 443
"""Port of TLS passthrough traffic through an OpenShift Route."""

LOADBALANCER_PORT = 9094
"""Port of Strimzi's external listener behind a LoadBalancer service."""


def route_name(cluster_name: str) -> str:
    return f"{cluster_name}-kafka-bootstrap"


def external_bootstrap_service_name(cluster_name: str) -> str:
    return f"{cluster_name}-kafka-external-bootstrap"


def get_internal_bootstrap_address(
    cluster_name: str, *, namespace: str, port: int = 9093
) -> str:
    """Get the in-cluster address of the Kafka bootstrap service.

    Only usable by clients that run inside the Kubernetes cluster. The
    default port is Strimzi's internal TLS listener.
    """
    return f"{cluster_name}-kafka-bootstrap.{namespace}.svc:{port}"


def get_external_bootstrap_address(
    cluster_name: str,
    *,
    accessor: ClusterAccessor,
    logger: Any | None = None,
) -> str:
    """Get the externally reachable bootstrap server of a Kafka cluster.

    The exposure mechanisms are tried in this order:

    1. An OpenShift Route named ``<cluster>-kafka-bootstrap`` with at least
       one ingress; the address is ``<ingress host>:443``.
    2. A ``NodePort`` external bootstrap service; the address is the first
       address of the first node and the node port of the first service
       port.
    3. A ``LoadBalancer`` external bootstrap service; the address is the
       hostname (or IP) of the first ingress, on port 9094.

    Parameters
    ----------
    cluster_name : `str`
        The name of the Strimzi Kafka cluster.
    accessor : `strimziclientprovisioner.k8s.ClusterAccessor`
        Read access to the cluster's namespace.
    logger : optional
        Logger to use. If not provided, a default logger will be used.

    Returns
    -------
    server : `str`
        The bootstrap server connection info (``host:port``).

    Raises
    ------
    strimziclientprovisioner.errors.EndpointUnavailable
        Raised if the external bootstrap service is absent or of another
        type, or if the service type matched but lacks the data needed to
        build an address. A matched type that fails is not followed by the
        remaining mechanisms.
    """
    if logger is None:
        logger = structlog.getLogger(__name__)

    route = accessor.get_route(route_name(cluster_name))
    if route is not None and route.ingress_host:
        logger.info(f"Using Route {route.name} for the bootstrap server")
        return f"{route.ingress_host}:{ROUTE_PORT}"

    service_name = external_bootstrap_service_name(cluster_name)
    service = accessor.get_service(service_name)
    if service is None:
        raise EndpointUnavailable(
            cluster_name, f"service {service_name} does not exist"
        )

    if service.type == "NodePort":
        return _get_nodeport_address(
            cluster_name, service, accessor=accessor, logger=logger
        )
    elif service.type == "LoadBalancer":
        return _get_loadbalancer_address(cluster_name, service, logger=logger)
    else:
        raise EndpointUnavailable(
            cluster_name,
            f"unexpected type {service.type} of service {service_name}",
        )


def _get_nodeport_address(
    cluster_name: str,
    service: ServiceDescriptor,
    *,
    accessor: ClusterAccessor,
    logger: Any,
) -> str:
    if not service.ports or service.ports[0].node_port is None:
        raise EndpointUnavailable(
            cluster_name, f"NodePort service {service.name} has no node port"
        )
    node_port = service.ports[0].node_port

    nodes = accessor.list_nodes()
    if not nodes:
        raise EndpointUnavailable(cluster_name, "no nodes are registered")
    node = nodes[0]
    if not node.addresses:
        raise EndpointUnavailable(
            cluster_name, f"node {node.name} has no addresses"
        )

    address = node.addresses[0][1]
    logger.info(
        f"Using NodePort service {service.name} on node {node.name} for the "
        "bootstrap server"
    )
    return f"{address}:{node_port}"


def _get_loadbalancer_address(
    cluster_name: str, service: ServiceDescriptor, *, logger: Any
) -> str:
    if not service.ingress:
        raise EndpointUnavailable(
            cluster_name,
            f"LoadBalancer service {service.name} has no ingress yet",
        )
    ingress = service.ingress[0]
    host = ingress.hostname or ingress.ip
    if not host:
        raise EndpointUnavailable(
            cluster_name,
            f"LoadBalancer service {service.name} ingress has neither a "
            "hostname nor an IP",
        )

    logger.info(
        f"Using LoadBalancer service {service.name} for the bootstrap server"
    )
    return f"{host}:{LOADBALANCER_PORT}"
