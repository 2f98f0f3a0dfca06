"""KeyBrokerService: the KBS test fixture lifecycle.

Typical use from a test driver::

    kbs = KeyBrokerService.provision("e2e-cluster", Cluster(kubeconfig))
    kbs.deploy()
    endpoint = kbs.get_kbs_endpoint()
    kbs.enable_kbs_customized_resource_policy("allow_all.rego")
    kbs.set_sample_secret_key()
    ...
    kbs.delete()
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from kbsprov.core.config import KbsConfig
from kbsprov.core.errors import EndpointError
from kbsprov.core.overlay import InstallOverlay
from kbsprov.k8s.cluster import Cluster, get_first_worker_node
from kbsprov.k8s.endpoint import DEPLOYMENT_AVAILABLE_TIMEOUT, resolve_kbs_endpoint
from kbsprov.kbs.client import KbsClient
from kbsprov.kbs.keys import ensure_keypair, write_secret
from kbsprov.kbs.overlays import (
    OVERLAY_PATHS,
    KbsInstallOverlay,
    OverlayKind,
    new_kbs_install_overlay,
    secret_overlay_path,
)
from kbsprov.kbs.staging import create_pv_on_worker_node, stage_directory

logger = logging.getLogger(__name__)

SAMPLE_SECRET_FILENAME = "key.bin"
SAMPLE_SECRET_RESOURCE_PATH = "reponame/workload_key/key.bin"


class KeyBrokerService:
    """A KBS deployed into the cluster under test.

    Attributes:
        cfg: Resolved settings and paths
        cluster: Cluster handle
        install_overlay: Overlay over the KBS kustomize base
        kubectl_cmd: kubectl executable
        endpoint: Cached endpoint, empty until resolved
    """

    def __init__(
        self,
        cfg: KbsConfig,
        cluster: Cluster,
        install_overlay: InstallOverlay,
        kubectl_cmd: str = "kubectl",
    ):
        self.cfg = cfg
        self.cluster = cluster
        self.install_overlay = install_overlay
        self.kubectl_cmd = kubectl_cmd
        self.endpoint = ""

    @property
    def secret_path(self) -> Path:
        overlays = secret_overlay_path(self.cfg.arch, self.cfg.ibm_se_creds_dir)
        return self.cfg.kbs_k8s_dir / overlays / SAMPLE_SECRET_FILENAME

    @classmethod
    def provision(
        cls,
        cluster_name: str,
        cluster: Cluster,
        cfg: Optional[KbsConfig] = None,
        kubectl_cmd: str = "kubectl",
    ) -> "KeyBrokerService":
        """Prepare the local KBS files and return the service.

        Writes the sample secret, generates the admin keypair unless one
        exists, and on the IBM SE flow stages the credentials on the first
        worker node and creates the PersistentVolume pointing at them.

        Args:
            cluster_name: Name embedded in the sample secret
            cluster: Cluster handle
            cfg: Settings (default: KbsConfig.from_environment())
            kubectl_cmd: kubectl executable (default: "kubectl")

        Returns:
            KeyBrokerService ready to deploy
        """
        if cfg is None:
            cfg = KbsConfig.from_environment()

        service = cls(cfg, cluster, KbsInstallOverlay(cfg, cluster, kubectl_cmd), kubectl_cmd)

        write_secret(service.secret_path, cluster_name)
        ensure_keypair(cfg.private_key_path, cfg.public_key_path)

        if cfg.ibm_se_creds_dir:
            service._stage_ibm_se_credentials()

        return service

    def _stage_ibm_se_credentials(self) -> None:
        logger.info("IBM_SE_CREDS_DIR is provided, deploy KBS with IBM SE verifier")
        # The KBS pod is always scheduled on the first worker node
        node_ip, node_name = get_first_worker_node(self.cluster.core_v1)
        logger.info(f"Copying IBM_SE_CREDS files to first worker node: {node_ip}")
        creds_dir = stage_directory(Path(self.cfg.ibm_se_creds_dir), node_ip, self.cfg.ssh_user)

        pv_file = self.cfg.kbs_k8s_dir / OVERLAY_PATHS[OverlayKind.IBM_SE] / "pv.yaml"
        create_pv_on_worker_node(pv_file, node_name, creds_dir, self.cluster, self.kubectl_cmd)

    def deploy(self, props: Optional[Dict[str, str]] = None) -> None:
        """Customize the overlays and install the KBS."""
        logger.info("Customize the overlay yaml file")
        self.install_overlay.edit(props)

        overlay = new_kbs_install_overlay(self.cfg, self.cluster, self.kubectl_cmd)
        overlay.edit(props)

        logger.info("Install Kbs")
        overlay.apply()

    def delete(self) -> None:
        overlay = new_kbs_install_overlay(self.cfg, self.cluster, self.kubectl_cmd)
        logger.info("Uninstall Kbs")
        overlay.delete()

    def get_cached_kbs_endpoint(self) -> str:
        """Return the resolved endpoint without contacting the cluster.

        Raises:
            EndpointError: If the endpoint has not been resolved yet
        """
        if self.endpoint:
            return self.endpoint
        raise EndpointError("KeyBrokerService endpoint not resolved")

    def get_kbs_endpoint(self, timeout: float = DEPLOYMENT_AVAILABLE_TIMEOUT) -> str:
        """Resolve (once) and return the KBS endpoint.

        Args:
            timeout: Seconds to wait for the deployment to become available

        Returns:
            Endpoint of the form ``http://<nodeIP>:<nodePort>``
        """
        if self.endpoint:
            return self.endpoint

        self.endpoint = resolve_kbs_endpoint(
            self.cluster,
            namespace=self.cfg.namespace,
            deployment_name=self.cfg.deployment_name,
            service_name=self.cfg.service_name,
            timeout=timeout,
        )
        return self.endpoint

    def client(self) -> KbsClient:
        """kbs-client bound to the resolved endpoint and admin key."""
        return KbsClient(self.cfg.kbs_client_dir, self.cfg.private_key_path, self.get_cached_kbs_endpoint())

    def enable_kbs_customized_resource_policy(self, policy_name: str) -> None:
        """Load a resource policy from the trustee sample policies."""
        policy_file = self.cfg.sample_policies_dir / policy_name
        logger.info(f"EnableKbsCustomizedResourcePolicy: {policy_file}")
        self.client().set_resource_policy(policy_file)

    def enable_kbs_customized_attestation_policy(self, policy_name: str) -> None:
        """Load an attestation policy from the trustee sample policies."""
        policy_file = self.cfg.sample_policies_dir / policy_name
        logger.info(f"EnableKbsCustomizedAttestationPolicy: {policy_file}")
        self.client().set_attestation_policy(policy_file)

    def set_sample_secret_key(self) -> None:
        self.client().set_resource(SAMPLE_SECRET_RESOURCE_PATH, self.secret_path)
