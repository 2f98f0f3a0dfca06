"""KBS overlay selection and customization.

Chooses which kustomize overlay of the trustee KBS tree is installed, based on
the host architecture and the optional IBM SE / custom PCCS settings, and
rewrites placeholder tokens in the overlay files before installation.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from kbsprov.core.config import KbsConfig
from kbsprov.core.errors import ProvisionError
from kbsprov.k8s.cluster import Cluster
from kbsprov.k8s.kustomize import KustomizeOverlay

logger = logging.getLogger(__name__)

# Intel collateral service written next to the custom PCCS URL
COLLATERAL_SERVICE_URL = "https://api.trustedservices.intel.com/sgx/certification/v4/"
CUSTOM_PCCS_CONFIG_FILENAME = "sgx_default_qcnl.conf"

# Image name referenced by the KBS base manifests
KBS_IMAGE_NAME = "kbs-container-image"


class OverlayKind(str, Enum):
    IBM_SE = "ibm-se"
    CUSTOM_PCCS = "custom_pccs"
    NODEPORT = "nodeport"


# Overlay directories relative to the KBS kustomize tree
OVERLAY_PATHS = {
    OverlayKind.IBM_SE: "overlays/ibm-se",
    OverlayKind.CUSTOM_PCCS: "custom_pccs",
    OverlayKind.NODEPORT: "nodeport",
}


def select_overlay(
    arch: str, ibm_se_creds_dir: Optional[str], custom_pccs_url: Optional[str]
) -> OverlayKind:
    """Pick the overlay family for this host.

    Args:
        arch: Host CPU architecture (``uname -m``)
        ibm_se_creds_dir: IBM SE credentials directory, if configured
        custom_pccs_url: Custom PCCS URL, if configured

    Returns:
        IBM_SE on s390x with IBM SE credentials, CUSTOM_PCCS on x86_64 with a
        custom PCCS URL, NODEPORT otherwise
    """
    if arch == "s390x" and ibm_se_creds_dir:
        return OverlayKind.IBM_SE
    if arch == "x86_64" and custom_pccs_url:
        return OverlayKind.CUSTOM_PCCS
    return OverlayKind.NODEPORT


def overlay_path(arch: str, ibm_se_creds_dir: Optional[str], custom_pccs_url: Optional[str]) -> str:
    return OVERLAY_PATHS[select_overlay(arch, ibm_se_creds_dir, custom_pccs_url)]


def secret_overlay_path(arch: str, ibm_se_creds_dir: Optional[str]) -> str:
    """Directory (relative to the KBS kustomize tree) holding ``key.bin``."""
    if arch == "s390x" and ibm_se_creds_dir:
        return OVERLAY_PATHS[OverlayKind.IBM_SE]
    return "overlays"


def substitute_tokens(path: Path, replacements: Dict[str, str]) -> None:
    """Replace literal tokens in a file, in place.

    This is plain text substitution; the file is not parsed. Every
    occurrence of each token is replaced, tokens are applied in order.

    Raises:
        ProvisionError: If the file cannot be read or written
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProvisionError(f"failed to read file {path}: {e}", path=str(path)) from e

    for token, value in replacements.items():
        content = content.replace(token, value)

    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ProvisionError(f"failed to write file {path}: {e}", path=str(path)) from e


def skip_se_certs_verification(patch_file: Path) -> None:
    """Turn off the IBM SE certificate check in the overlay patch."""
    substitute_tokens(patch_file, {"false": "true"})


def prepare_pv_manifest(pv_file: Path, node_name: str, remote_creds_dir: str) -> None:
    """Fill the IBM SE PersistentVolume placeholders."""
    substitute_tokens(
        pv_file,
        {
            "${IBM_SE_CREDS_DIR}": remote_creds_dir,
            "${NODE_NAME}": node_name,
        },
    )


def write_custom_pccs_config(path: Path, pccs_url: str) -> None:
    """Write the QCNL config pointing the SGX verifier at a custom PCCS."""
    config = {"pccs_url": pccs_url, "collateral_service": COLLATERAL_SERVICE_URL}
    try:
        path.write_text(json.dumps(config), encoding="utf-8")
    except OSError as e:
        raise ProvisionError(f"failed to write file {path}: {e}", path=str(path)) from e


class KbsInstallOverlay:
    """KBS kustomize base.

    Edits here customize the base every variant builds on; image overrides
    are taken from the ``KBS_IMAGE`` and ``KBS_IMAGE_TAG`` props.
    """

    folder = "base"

    def __init__(self, cfg: KbsConfig, cluster: Cluster, kubectl_cmd: str = "kubectl"):
        logger.info(f"Creating kbs install overlay ({self.folder})")
        self.cfg = cfg
        self.overlay = KustomizeOverlay(cfg.kbs_k8s_dir / self.folder, cluster, kubectl_cmd)

    @property
    def dir_path(self) -> Path:
        return self.overlay.dir_path

    def apply(self) -> None:
        self.overlay.apply()

    def delete(self) -> None:
        self.overlay.delete()

    def edit(self, props: Optional[Dict[str, str]] = None) -> None:
        props = props or {}
        self.overlay.set_image(
            KBS_IMAGE_NAME,
            new_name=props.get("KBS_IMAGE"),
            new_tag=props.get("KBS_IMAGE_TAG"),
        )


class NodePortKbsOverlay(KbsInstallOverlay):
    """Default overlay exposing the KBS through a NodePort Service."""

    folder = OVERLAY_PATHS[OverlayKind.NODEPORT]

    def edit(self, props: Optional[Dict[str, str]] = None) -> None:
        # Nothing to customize
        return None


class CustomPccsKbsOverlay(KbsInstallOverlay):
    """x86_64 overlay using a custom PCCS for SGX collateral."""

    folder = OVERLAY_PATHS[OverlayKind.CUSTOM_PCCS]

    def edit(self, props: Optional[Dict[str, str]] = None) -> None:
        logger.info("CUSTOM_PCCS_URL is provided, write custom PCCS config")
        write_custom_pccs_config(self.dir_path / CUSTOM_PCCS_CONFIG_FILENAME, self.cfg.custom_pccs_url)


class IbmSeKbsOverlay(KbsInstallOverlay):
    """s390x overlay with the IBM Secure Execution verifier."""

    folder = OVERLAY_PATHS[OverlayKind.IBM_SE]

    def edit(self, props: Optional[Dict[str, str]] = None) -> None:
        # Test clusters run on dev machines without the SE host key certs
        skip_se_certs_verification(self.dir_path / "patch.yaml")


OVERLAY_CLASSES = {
    OverlayKind.IBM_SE: IbmSeKbsOverlay,
    OverlayKind.CUSTOM_PCCS: CustomPccsKbsOverlay,
    OverlayKind.NODEPORT: NodePortKbsOverlay,
}


def new_kbs_install_overlay(
    cfg: KbsConfig, cluster: Cluster, kubectl_cmd: str = "kubectl"
) -> KbsInstallOverlay:
    """Create the overlay variant selected for this host."""
    kind = select_overlay(cfg.arch, cfg.ibm_se_creds_dir, cfg.custom_pccs_url)
    logger.info(f"Selected {kind.value} overlay for {cfg.arch}")
    return OVERLAY_CLASSES[kind](cfg, cluster, kubectl_cmd)
