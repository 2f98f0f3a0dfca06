"""Cluster configuration handle.

Wraps a kubeconfig path and lazily builds the Kubernetes API clients the
provisioner needs, plus node helpers shared by endpoint resolution and IBM SE
staging.
"""

import logging
from typing import Dict, Optional, Tuple

from kubernetes import client, config

from kbsprov.core.errors import EndpointError

logger = logging.getLogger(__name__)

CONTROL_PLANE_LABELS = (
    "node-role.kubernetes.io/master",
    "node-role.kubernetes.io/control-plane",
)

# Address types tried in order when picking a node's reachable address
PREFERRED_ADDRESS_TYPES = ("InternalIP", "ExternalIP")


class Cluster:
    """Handle on the cluster under test.

    API clients are created on first use from ``kubeconfig`` (or the default
    kubeconfig resolution when None). Pre-built clients can be passed in,
    which is how tests supply fakes.

    Attributes:
        kubeconfig: Path to the kubeconfig file, exported as KUBECONFIG to
                    kubectl invocations
    """

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        core_v1: Optional[client.CoreV1Api] = None,
        apps_v1: Optional[client.AppsV1Api] = None,
    ):
        self.kubeconfig = kubeconfig
        self._api_client: Optional[client.ApiClient] = None
        self._core_v1 = core_v1
        self._apps_v1 = apps_v1

    def _get_api_client(self) -> client.ApiClient:
        if self._api_client is None:
            logger.debug(f"Loading kubeconfig from {self.kubeconfig or 'default location'}")
            self._api_client = config.new_client_from_config(config_file=self.kubeconfig)
        return self._api_client

    @property
    def core_v1(self) -> client.CoreV1Api:
        if self._core_v1 is None:
            self._core_v1 = client.CoreV1Api(self._get_api_client())
        return self._core_v1

    @property
    def apps_v1(self) -> client.AppsV1Api:
        if self._apps_v1 is None:
            self._apps_v1 = client.AppsV1Api(self._get_api_client())
        return self._apps_v1

    def kubectl_env(self) -> Dict[str, str]:
        """Environment overrides pointing kubectl at this cluster."""
        if self.kubeconfig:
            return {"KUBECONFIG": self.kubeconfig}
        return {}


def is_worker_node(node: client.V1Node) -> bool:
    """Return True unless the node carries a master/control-plane role label."""
    labels = node.metadata.labels or {}
    return not any(label in labels for label in CONTROL_PLANE_LABELS)


def get_node_address(node: client.V1Node) -> str:
    """Pick the reachable address of a node.

    An InternalIP is preferred, then an ExternalIP. A node reporting a single
    address of any type uses that address.

    Raises:
        EndpointError: If the node has no addresses, or several addresses of
                       the preferred type
    """
    addresses = (node.status.addresses if node.status else None) or []
    name = node.metadata.name

    for address_type in PREFERRED_ADDRESS_TYPES:
        candidates = [a.address for a in addresses if a.type == address_type]
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            raise EndpointError(
                f"Node {name} has several {address_type} addresses: {', '.join(candidates)}"
            )

    if len(addresses) == 1:
        return addresses[0].address
    if not addresses:
        raise EndpointError(f"Node {name} reports no addresses")
    raise EndpointError(
        f"Node {name} has no InternalIP/ExternalIP and several other addresses"
    )


def get_first_worker_node(core_v1: client.CoreV1Api) -> Tuple[str, str]:
    """Find the first worker node in the cluster.

    Args:
        core_v1: CoreV1 API client

    Returns:
        Tuple of (node address, node name)

    Raises:
        EndpointError: If the cluster has no worker nodes
    """
    for node in core_v1.list_node().items:
        if is_worker_node(node):
            return get_node_address(node), node.metadata.name
    raise EndpointError("no worker nodes found")
