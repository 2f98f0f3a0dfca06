"""Kustomize overlay apply/delete/edit.

``KustomizeOverlay`` points at a kustomize directory and installs or removes
it with ``kubectl -k``. Edits to ``kustomization.yaml`` are done with a
ruamel.yaml round trip so comments and ordering survive.
"""

import logging
from pathlib import Path
from typing import Optional

from ruamel.yaml import YAML

from kbsprov.core.errors import ProvisionError
from kbsprov.core.process import run_command
from kbsprov.k8s.cluster import Cluster

logger = logging.getLogger(__name__)

KUSTOMIZATION_FILENAMES = ("kustomization.yaml", "kustomization.yml", "Kustomization")


class KustomizeOverlay:
    """A kustomize directory bound to a cluster.

    Attributes:
        dir_path: The kustomize directory
        cluster: Cluster the overlay is applied to
        kubectl_cmd: kubectl executable (default: "kubectl")
    """

    def __init__(self, dir_path: Path, cluster: Cluster, kubectl_cmd: str = "kubectl"):
        self.dir_path = Path(dir_path)
        if not self.dir_path.is_dir():
            raise ProvisionError(
                f"kustomize directory not found: {self.dir_path}", path=str(self.dir_path)
            )
        self.cluster = cluster
        self.kubectl_cmd = kubectl_cmd

    def apply(self) -> None:
        logger.info(f"Applying kustomize overlay {self.dir_path}")
        run_command(
            [self.kubectl_cmd, "apply", "-k", str(self.dir_path)],
            env=self.cluster.kubectl_env(),
        )

    def delete(self) -> None:
        logger.info(f"Deleting kustomize overlay {self.dir_path}")
        run_command(
            [self.kubectl_cmd, "delete", "-k", str(self.dir_path), "--ignore-not-found=true"],
            env=self.cluster.kubectl_env(),
        )

    def kustomization_file(self) -> Path:
        """Locate the kustomization file of this directory.

        Raises:
            ProvisionError: If the directory has no kustomization file
        """
        for filename in KUSTOMIZATION_FILENAMES:
            candidate = self.dir_path / filename
            if candidate.is_file():
                return candidate
        raise ProvisionError(
            f"no kustomization file in {self.dir_path}", path=str(self.dir_path)
        )

    def set_image(
        self, name: str, new_name: Optional[str] = None, new_tag: Optional[str] = None
    ) -> None:
        """Set the image override for ``name`` in the kustomization.

        Updates the matching entry of the ``images`` list, adding one if the
        image is not listed yet. Fields left as None are not touched.

        Args:
            name: Image name as referenced by the manifests
            new_name: Replacement image repository
            new_tag: Replacement image tag
        """
        if new_name is None and new_tag is None:
            return

        path = self.kustomization_file()
        yaml = YAML()
        yaml.preserve_quotes = True
        with open(path, "r") as f:
            kustomization = yaml.load(f)
        if kustomization is None:
            kustomization = {}

        images = kustomization.get("images")
        if images is None:
            images = []
            kustomization["images"] = images

        entry = next((img for img in images if img.get("name") == name), None)
        if entry is None:
            entry = {"name": name}
            images.append(entry)

        if new_name is not None:
            entry["newName"] = new_name
        if new_tag is not None:
            entry["newTag"] = new_tag

        with open(path, "w") as f:
            yaml.dump(kustomization, f)
        logger.info(f"Set image {name} to {new_name or '<unchanged>'}:{new_tag or '<unchanged>'}")
