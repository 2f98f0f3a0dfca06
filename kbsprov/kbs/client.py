"""kbs-client wrapper for loading policies and resources into a running KBS."""

import logging
from pathlib import Path
from typing import List

from kbsprov.core.process import run_command

logger = logging.getLogger(__name__)


class KbsClient:
    """Admin calls against a KBS through the ``kbs-client`` binary.

    Every call is a separate synchronous process run authenticated with the
    admin private key. A non-zero exit raises ``CommandError``.

    Attributes:
        client_dir: Directory holding the ``kbs-client`` binary (used as cwd)
        private_key: Admin private key (PEM)
        endpoint: KBS URL, ``http://host:port``
    """

    binary = "./kbs-client"

    def __init__(self, client_dir: Path, private_key: Path, endpoint: str):
        self.client_dir = Path(client_dir)
        self.private_key = Path(private_key)
        self.endpoint = endpoint

    def _config_command(self, *args: str) -> List[str]:
        return [
            self.binary,
            "--url", self.endpoint,
            "config",
            "--auth-private-key", str(self.private_key),
            *args,
        ]

    def _run(self, *args: str) -> str:
        return run_command(self._config_command(*args), cwd=str(self.client_dir))

    def set_resource_policy(self, policy_file: Path) -> str:
        logger.info(f"Setting resource policy: {policy_file}")
        return self._run("set-resource-policy", "--policy-file", str(policy_file))

    def set_attestation_policy(self, policy_file: Path) -> str:
        logger.info(f"Setting attestation policy: {policy_file}")
        return self._run("set-attestation-policy", "--policy-file", str(policy_file))

    def set_resource(self, resource_path: str, resource_file: Path) -> str:
        """Store ``resource_file`` under ``resource_path`` (repo/type/tag)."""
        logger.info(f"set key resource: {resource_file} as {resource_path}")
        return self._run("set-resource", "--path", resource_path, "--resource-file", str(resource_file))
