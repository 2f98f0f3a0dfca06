"""IBM SE credential staging on a worker node.

The IBM SE verifier reads host key documents from a hostPath volume, so the
local credentials directory is copied to the worker node the KBS is pinned to
and exposed through a PersistentVolume.
"""

import logging
import posixpath
from pathlib import Path

from kbsprov.core.errors import CommandError, StagingError
from kbsprov.core.process import run_command
from kbsprov.k8s.cluster import Cluster
from kbsprov.kbs.overlays import prepare_pv_manifest

logger = logging.getLogger(__name__)

REMOTE_TMP_DIR = "/tmp"

# Test clusters are recreated constantly, host keys are never known ahead
INSECURE_SSH_OPTIONS = ["-o", "StrictHostKeyChecking=no", "-o", "UserKnownHostsFile=/dev/null"]


def compress_directory(source_dir: Path) -> Path:
    """Archive ``source_dir`` into ``<source_dir>.tar.gz`` next to it."""
    archive = source_dir.parent / f"{source_dir.name}.tar.gz"
    run_command(["tar", "-czf", str(archive), "-C", str(source_dir.parent), source_dir.name])
    return archive


def transfer_file(local_path: Path, node_ip: str, remote_path: str, user: str = "root") -> None:
    run_command(["scp", *INSECURE_SSH_OPTIONS, str(local_path), f"{user}@{node_ip}:{remote_path}"])


def decompress_on_node(node_ip: str, remote_path: str, target_dir: str, user: str = "root") -> None:
    run_command(["ssh", *INSECURE_SSH_OPTIONS, f"{user}@{node_ip}", f"tar -xzf {remote_path} -C {target_dir}"])


def remote_home(user: str) -> str:
    """Home directory of ``user`` on the node, where staged files are unpacked."""
    if user == "root":
        return "/root"
    return posixpath.join("/home", user)


def remote_creds_dir(source_dir: Path, user: str = "root") -> str:
    """Where ``source_dir`` ends up on the node after staging."""
    return posixpath.join(remote_home(user), Path(source_dir).name)


def stage_directory(source_dir: Path, node_ip: str, user: str = "root") -> str:
    """Copy a local directory to a node and unpack it in the user's home.

    Steps run in order and stop at the first failure: compress locally, scp
    the archive to /tmp on the node, untar it over ssh into the home of
    ``user``. The local archive is always removed; nothing is cleaned up on
    the node.

    Args:
        source_dir: Local directory to copy
        node_ip: Address of the target node
        user: Remote user (default: "root")

    Returns:
        Path of the unpacked directory on the node

    Raises:
        StagingError: Naming the step that failed
    """
    source_dir = Path(source_dir)
    try:
        archive = compress_directory(source_dir)
    except CommandError as e:
        raise StagingError(f"failed to compress directory {source_dir}: {e}", step="compress") from e

    try:
        remote_archive = posixpath.join(REMOTE_TMP_DIR, archive.name)
        try:
            transfer_file(archive, node_ip, remote_archive, user)
        except CommandError as e:
            raise StagingError(f"failed to transfer file to {node_ip}: {e}", step="transfer") from e

        try:
            decompress_on_node(node_ip, remote_archive, remote_home(user), user)
        except CommandError as e:
            raise StagingError(
                f"failed to decompress file on target node {node_ip}: {e}", step="decompress"
            ) from e
    finally:
        archive.unlink(missing_ok=True)

    return remote_creds_dir(source_dir, user)


def create_pv_on_worker_node(
    pv_file: Path, node_name: str, creds_dir: str, cluster: Cluster, kubectl_cmd: str = "kubectl"
) -> None:
    """Pin the IBM SE PersistentVolume to ``node_name`` and apply it.

    Args:
        pv_file: PersistentVolume manifest with placeholder tokens
        node_name: Worker node holding the staged credentials
        creds_dir: Credentials directory on the node
        cluster: Cluster to apply the volume to
    """
    logger.info(f"Creating PV for kbs with ibm-se on {node_name}")
    prepare_pv_manifest(pv_file, node_name, creds_dir)
    run_command([kubectl_cmd, "apply", "-f", str(pv_file)], env=cluster.kubectl_env())
