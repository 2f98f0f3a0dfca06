"""Centralized configuration loading for KBSProv.

This module provides utilities for loading configuration from config.json
with support for environment variable fallbacks, and the ``KbsConfig``
dataclass that carries the trustee checkout location and every path derived
from it.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from kbsprov.core.process import get_hardware_platform

DEFAULT_NAMESPACE = "coco-tenant"
DEFAULT_DEPLOYMENT_NAME = "kbs"
DEFAULT_SERVICE_NAME = "kbs"
DEFAULT_SSH_USER = "root"


def load_config(config_path: str = "config.json") -> Dict[str, Any]:
    """Read the provisioner's optional ``config.json``.

    The file may set ``trustee.repo_path``, ``ibm_se_creds_dir``,
    ``custom_pccs_url`` and the ``kbs`` section (namespace, deployment and
    service names, ssh user). A missing or malformed file is treated as
    empty so every setting falls back to the environment or its default.

    Args:
        config_path: Location of the JSON file (default: "config.json")

    Returns:
        Parsed settings, or an empty dict
    """
    path = Path(config_path)

    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError):
        return {}


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Resolve one KBS setting from config.json, then the environment.

    The environment variable is the upper-cased keys joined with ``_``:
    ``["trustee", "repo_path"]`` reads ``TRUSTEE_REPO_PATH`` and
    ``["kbs", "ssh_user"]`` reads ``KBS_SSH_USER``.

    Args:
        keys: Path of the setting inside config.json
        default: Value used when neither source sets it
        config: Already loaded settings (uses load_config() if not provided)

    Returns:
        The configured value, the environment value, or ``default``
    """
    if config is None:
        config = load_config()

    value = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
            if value is None:
                break
        else:
            return default

    if value is not None:
        return value

    env_key = "_".join(k.upper() for k in keys)
    env_value = os.environ.get(env_key)
    if env_value is not None:
        return env_value

    return default


@dataclass(frozen=True)
class KbsConfig:
    """Resolved settings for one KBS fixture.

    Built once per test run; every file-system location used by the
    provisioner is derived from ``trustee_repo_path`` here rather than
    concatenated at call sites.

    Attributes:
        trustee_repo_path: Root of the trustee checkout holding the KBS
                           kustomize tree and the built kbs-client
        arch: Host CPU architecture (``uname -m``)
        ibm_se_creds_dir: Local IBM Secure Execution credentials directory,
                          enables the IBM SE flow when set
        custom_pccs_url: PCCS URL, enables the custom PCCS overlay on x86_64
        namespace: Namespace the KBS is deployed into
        deployment_name: Name of the KBS Deployment (also its ``app`` label)
        service_name: Name of the KBS Service
        ssh_user: Remote user for copying files to worker nodes
    """
    trustee_repo_path: Path
    arch: str
    ibm_se_creds_dir: Optional[str] = None
    custom_pccs_url: Optional[str] = None
    namespace: str = DEFAULT_NAMESPACE
    deployment_name: str = DEFAULT_DEPLOYMENT_NAME
    service_name: str = DEFAULT_SERVICE_NAME
    ssh_user: str = DEFAULT_SSH_USER

    @property
    def kbs_k8s_dir(self) -> Path:
        """Directory holding the KBS kustomize base and overlays."""
        return self.trustee_repo_path / "kbs" / "config" / "kubernetes"

    @property
    def base_dir(self) -> Path:
        return self.kbs_k8s_dir / "base"

    @property
    def private_key_path(self) -> Path:
        return self.base_dir / "kbs.key"

    @property
    def public_key_path(self) -> Path:
        return self.base_dir / "kbs.pem"

    @property
    def kbs_client_dir(self) -> Path:
        """Directory containing the built ``kbs-client`` binary."""
        return self.trustee_repo_path / "target" / "release"

    @property
    def sample_policies_dir(self) -> Path:
        return self.trustee_repo_path / "kbs" / "sample_policies"

    @classmethod
    def from_environment(
        cls,
        config: Optional[Dict[str, Any]] = None,
        repo_path: Optional[str] = None,
        arch: Optional[str] = None,
    ) -> "KbsConfig":
        """Build a KbsConfig from config.json and the environment.

        The trustee checkout defaults to ``../trustee`` relative to the
        current working directory. The architecture is detected with
        ``uname -m`` unless given.

        Args:
            config: Optional config dict (uses load_config() if not provided)
            repo_path: Explicit trustee checkout path, overrides config/env
            arch: Explicit architecture, skips detection

        Returns:
            KbsConfig with all values resolved
        """
        if config is None:
            config = load_config()

        if repo_path is None:
            repo_path = get_config_value(["trustee", "repo_path"], config=config)
        if repo_path is None:
            repo_path = os.path.join(os.getcwd(), "..", "trustee")

        if arch is None:
            arch = get_hardware_platform()

        return cls(
            trustee_repo_path=Path(repo_path),
            arch=arch,
            ibm_se_creds_dir=get_config_value(["ibm_se_creds_dir"], config=config) or None,
            custom_pccs_url=get_config_value(["custom_pccs_url"], config=config) or None,
            namespace=get_config_value(["kbs", "namespace"], DEFAULT_NAMESPACE, config),
            deployment_name=get_config_value(
                ["kbs", "deployment_name"], DEFAULT_DEPLOYMENT_NAME, config
            ),
            service_name=get_config_value(["kbs", "service_name"], DEFAULT_SERVICE_NAME, config),
            ssh_user=get_config_value(["kbs", "ssh_user"], DEFAULT_SSH_USER, config),
        )
