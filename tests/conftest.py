"""Shared fixtures: a fake trustee checkout and a fake cluster."""

from typing import List, Optional
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from kbsprov.core.config import KbsConfig
from kbsprov.k8s.cluster import Cluster

BASE_KUSTOMIZATION = """apiVersion: kustomize.config.k8s.io/v1beta1
kind: Kustomization
namespace: coco-tenant

# KBS image used by all overlays
images:
- name: kbs-container-image
  newName: ghcr.io/confidential-containers/staged-images/kbs
  newTag: latest

resources:
- namespace.yaml
- deployment.yaml
- service.yaml
"""

OVERLAY_KUSTOMIZATION = """apiVersion: kustomize.config.k8s.io/v1beta1
kind: Kustomization
resources:
- ../base
"""

IBM_SE_PV = """apiVersion: v1
kind: PersistentVolume
metadata:
  name: ibmse-pv
spec:
  capacity:
    storage: 100Mi
  accessModes:
  - ReadOnlyMany
  local:
    path: ${IBM_SE_CREDS_DIR}
  nodeAffinity:
    required:
      nodeSelectorTerms:
      - matchExpressions:
        - key: kubernetes.io/hostname
          operator: In
          values:
          - ${NODE_NAME}
"""

IBM_SE_PATCH = """apiVersion: apps/v1
kind: Deployment
metadata:
  name: kbs
spec:
  template:
    spec:
      containers:
      - name: kbs
        env:
        - name: SE_SKIP_CERTS_VERIFICATION
          value: "false"
"""


@pytest.fixture
def trustee_repo(tmp_path):
    """Minimal trustee checkout with the KBS kustomize tree."""
    kbs_k8s = tmp_path / "trustee" / "kbs" / "config" / "kubernetes"
    for folder in ("base", "overlays/ibm-se", "nodeport", "custom_pccs"):
        (kbs_k8s / folder).mkdir(parents=True)

    (kbs_k8s / "base" / "kustomization.yaml").write_text(BASE_KUSTOMIZATION)
    for folder in ("overlays/ibm-se", "nodeport", "custom_pccs"):
        (kbs_k8s / folder / "kustomization.yaml").write_text(OVERLAY_KUSTOMIZATION)
    (kbs_k8s / "overlays" / "ibm-se" / "pv.yaml").write_text(IBM_SE_PV)
    (kbs_k8s / "overlays" / "ibm-se" / "patch.yaml").write_text(IBM_SE_PATCH)

    (tmp_path / "trustee" / "target" / "release").mkdir(parents=True)
    (tmp_path / "trustee" / "kbs" / "sample_policies").mkdir(parents=True)
    return tmp_path / "trustee"


@pytest.fixture
def kbs_config(trustee_repo):
    return KbsConfig(trustee_repo_path=trustee_repo, arch="x86_64")


def _service(name: str = "kbs", service_type: str = "NodePort", node_port: Optional[int] = 30100):
    ports = [client.V1ServicePort(port=8080, node_port=node_port)] if node_port is not None else []
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=name, namespace="coco-tenant"),
        spec=client.V1ServiceSpec(type=service_type, ports=ports),
    )


def _pod(name: str = "kbs-7d9f", app: str = "kbs", node_name: Optional[str] = "worker-1"):
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace="coco-tenant", labels={"app": app}),
        spec=client.V1PodSpec(containers=[], node_name=node_name),
    )


def _node(name: str = "worker-1", address: str = "10.0.0.5", labels: Optional[dict] = None):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, labels=labels or {}),
        status=client.V1NodeStatus(
            addresses=[client.V1NodeAddress(address=address, type="InternalIP")]
        ),
    )


def _deployment(available: bool = True):
    return client.V1Deployment(
        metadata=client.V1ObjectMeta(name="kbs", namespace="coco-tenant"),
        status=client.V1DeploymentStatus(
            conditions=[
                client.V1DeploymentCondition(
                    type="Available", status="True" if available else "False"
                )
            ]
        ),
    )


@pytest.fixture
def make_cluster():
    """Factory for a Cluster backed by mocked API clients."""

    def _make(
        services: Optional[List[client.V1Service]] = None,
        pods: Optional[List[client.V1Pod]] = None,
        nodes: Optional[List[client.V1Node]] = None,
        deployment: Optional[client.V1Deployment] = None,
    ) -> Cluster:
        core_v1 = MagicMock(spec=client.CoreV1Api)
        apps_v1 = MagicMock(spec=client.AppsV1Api)
        core_v1.list_namespaced_service.return_value = client.V1ServiceList(
            items=[_service()] if services is None else services
        )
        core_v1.list_namespaced_pod.return_value = client.V1PodList(
            items=[_pod()] if pods is None else pods
        )
        core_v1.list_node.return_value = client.V1NodeList(
            items=[_node()] if nodes is None else nodes
        )
        apps_v1.read_namespaced_deployment.return_value = (
            _deployment() if deployment is None else deployment
        )
        return Cluster(kubeconfig="/tmp/kubeconfig", core_v1=core_v1, apps_v1=apps_v1)

    return _make


@pytest.fixture
def make_service():
    return _service


@pytest.fixture
def make_pod():
    return _pod


@pytest.fixture
def make_node():
    return _node


@pytest.fixture
def make_deployment():
    return _deployment
