"""KBS endpoint resolution.

Waits for the KBS Deployment to become available, then cross-references the
NodePort Service, the KBS pod and the node it runs on to build a reachable
``http://<nodeIP>:<nodePort>`` URL.
"""

import logging

from kubernetes import client
from kubernetes.client.rest import ApiException
from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from kbsprov.core.errors import EndpointError
from kbsprov.k8s.cluster import Cluster, get_node_address

logger = logging.getLogger(__name__)

DEPLOYMENT_AVAILABLE_TIMEOUT = 120.0
DEPLOYMENT_POLL_INTERVAL = 2.0


def is_deployment_available(apps_v1: client.AppsV1Api, name: str, namespace: str) -> bool:
    """Check the Deployment's ``Available`` condition.

    A Deployment that does not exist yet counts as not available; any other
    API failure propagates.
    """
    try:
        deployment = apps_v1.read_namespaced_deployment(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            return False
        raise

    conditions = (deployment.status.conditions if deployment.status else None) or []
    return any(c.type == "Available" and c.status == "True" for c in conditions)


def wait_for_deployment_available(
    apps_v1: client.AppsV1Api,
    name: str,
    namespace: str,
    timeout: float = DEPLOYMENT_AVAILABLE_TIMEOUT,
    poll_interval: float = DEPLOYMENT_POLL_INTERVAL,
) -> None:
    """Block until the Deployment reports ``Available=True``.

    Args:
        apps_v1: AppsV1 API client
        name: Deployment name
        namespace: Deployment namespace
        timeout: Seconds to wait before giving up (default: 120)
        poll_interval: Seconds between polls (default: 2)

    Raises:
        EndpointError: If the Deployment is not available within ``timeout``
    """
    logger.info(f"Wait for the {name} deployment be available")
    retrying = Retrying(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(poll_interval),
        retry=retry_if_result(lambda available: not available),
    )
    try:
        retrying(is_deployment_available, apps_v1, name, namespace)
    except RetryError as e:
        raise EndpointError(
            f"timed out after {timeout}s waiting for deployment {namespace}/{name} to be available"
        ) from e


def find_service(core_v1: client.CoreV1Api, name: str, namespace: str) -> client.V1Service:
    for service in core_v1.list_namespaced_service(namespace=namespace).items:
        if service.metadata.name == name:
            return service
    raise EndpointError(f"Service {name} not found")


def get_node_port(service: client.V1Service) -> int:
    """Extract the node port of a NodePort Service.

    The first declared port entry is authoritative.

    Raises:
        EndpointError: If the Service is not of type NodePort or has no
                       allocated node port
    """
    name = service.metadata.name
    if service.spec.type != "NodePort":
        raise EndpointError(f"Service {name} is not of type NodePort (got {service.spec.type})")

    ports = service.spec.ports or []
    if not ports or ports[0].node_port is None:
        raise EndpointError(f"NodePort is not configured for Service {name}")
    return ports[0].node_port


def get_node_ip_for_deployment(
    core_v1: client.CoreV1Api, deployment_name: str, namespace: str
) -> str:
    """Resolve the address of the node serving the deployment's pod.

    Args:
        core_v1: CoreV1 API client
        deployment_name: Deployment name, matched against the pods' ``app`` label
        namespace: Namespace of the pods

    Returns:
        Address of the node the single matching pod is scheduled on

    Raises:
        EndpointError: If no pod or several pods match, the pod is not
                       scheduled, or its node is missing
    """
    pods = core_v1.list_namespaced_pod(
        namespace=namespace, label_selector=f"app={deployment_name}"
    ).items
    matching = [p for p in pods if (p.metadata.labels or {}).get("app") == deployment_name]

    if not matching:
        raise EndpointError(f"no matching pod found for app={deployment_name} in {namespace}")
    if len(matching) > 1:
        names = ", ".join(p.metadata.name for p in matching)
        raise EndpointError(f"several pods match app={deployment_name} in {namespace}: {names}")

    pod = matching[0]
    node_name = pod.spec.node_name if pod.spec else None
    if not node_name:
        raise EndpointError(f"pod {pod.metadata.name} is not scheduled on a node")

    for node in core_v1.list_node().items:
        if node.metadata.name == node_name:
            return get_node_address(node)

    raise EndpointError(f"Node {node_name} not found for pod {pod.metadata.name}")


def resolve_kbs_endpoint(
    cluster: Cluster,
    namespace: str,
    deployment_name: str,
    service_name: str,
    timeout: float = DEPLOYMENT_AVAILABLE_TIMEOUT,
) -> str:
    """Resolve the externally reachable KBS URL.

    Returns:
        Endpoint of the form ``http://<nodeIP>:<nodePort>``
    """
    wait_for_deployment_available(cluster.apps_v1, deployment_name, namespace, timeout=timeout)

    service = find_service(cluster.core_v1, service_name, namespace)
    node_port = get_node_port(service)
    node_ip = get_node_ip_for_deployment(cluster.core_v1, deployment_name, namespace)

    endpoint = f"http://{node_ip}:{node_port}"
    logger.info(f"Resolved KBS endpoint {endpoint}")
    return endpoint
