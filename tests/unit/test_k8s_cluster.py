"""Tests for the cluster handle and node helpers."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client

from kbsprov.core.errors import EndpointError
from kbsprov.k8s.cluster import Cluster, get_first_worker_node, get_node_address, is_worker_node


def node_with_addresses(*addresses):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name="worker-1"),
        status=client.V1NodeStatus(
            addresses=[client.V1NodeAddress(address=a, type=t) for t, a in addresses]
        ),
    )


class TestCluster:
    """Tests for Cluster."""

    def test_kubectl_env(self):
        assert Cluster(kubeconfig="/tmp/kc").kubectl_env() == {"KUBECONFIG": "/tmp/kc"}
        assert Cluster().kubectl_env() == {}

    @patch("kbsprov.k8s.cluster.config.new_client_from_config")
    def test_clients_built_once_from_kubeconfig(self, mock_new_client):
        mock_new_client.return_value = MagicMock(spec=client.ApiClient)
        cluster = Cluster(kubeconfig="/tmp/kc")

        core_v1 = cluster.core_v1
        apps_v1 = cluster.apps_v1

        assert cluster.core_v1 is core_v1
        assert cluster.apps_v1 is apps_v1
        mock_new_client.assert_called_once_with(config_file="/tmp/kc")

    def test_injected_clients_are_used(self):
        core_v1 = MagicMock()
        assert Cluster(core_v1=core_v1).core_v1 is core_v1


class TestNodeHelpers:
    """Tests for worker detection and address selection."""

    @pytest.mark.parametrize(
        "labels,expected",
        [
            ({}, True),
            ({"node-role.kubernetes.io/worker": ""}, True),
            ({"node-role.kubernetes.io/master": ""}, False),
            ({"node-role.kubernetes.io/control-plane": ""}, False),
        ],
    )
    def test_is_worker_node(self, make_node, labels, expected):
        assert is_worker_node(make_node(labels=labels)) is expected

    def test_internal_ip_preferred(self):
        node = node_with_addresses(("Hostname", "worker-1"), ("InternalIP", "10.0.0.5"))

        assert get_node_address(node) == "10.0.0.5"

    def test_external_ip_fallback(self):
        node = node_with_addresses(("Hostname", "worker-1"), ("ExternalIP", "203.0.113.7"))

        assert get_node_address(node) == "203.0.113.7"

    def test_single_address_of_any_type(self):
        assert get_node_address(node_with_addresses(("Hostname", "worker-1"))) == "worker-1"

    def test_several_internal_ips_are_ambiguous(self):
        node = node_with_addresses(("InternalIP", "10.0.0.5"), ("InternalIP", "10.0.1.5"))

        with pytest.raises(EndpointError) as exc_info:
            get_node_address(node)

        assert "several InternalIP addresses" in str(exc_info.value)

    def test_no_addresses(self):
        with pytest.raises(EndpointError):
            get_node_address(node_with_addresses())

    def test_first_worker_node_skips_control_plane(self, make_cluster, make_node):
        cluster = make_cluster(nodes=[
            make_node(name="cp-1", address="10.0.0.2", labels={"node-role.kubernetes.io/control-plane": ""}),
            make_node(name="worker-1", address="10.0.0.5"),
            make_node(name="worker-2", address="10.0.0.6"),
        ])

        assert get_first_worker_node(cluster.core_v1) == ("10.0.0.5", "worker-1")

    def test_no_worker_nodes(self, make_cluster, make_node):
        cluster = make_cluster(nodes=[make_node(name="cp-1", labels={"node-role.kubernetes.io/master": ""})])

        with pytest.raises(EndpointError) as exc_info:
            get_first_worker_node(cluster.core_v1)

        assert "no worker nodes found" in str(exc_info.value)
