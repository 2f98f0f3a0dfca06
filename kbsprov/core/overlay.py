"""InstallOverlay protocol for installable manifest overlays."""

from typing import Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class InstallOverlay(Protocol):
    """Installable overlay interface.

    An install overlay is a directory of manifests that can be installed into
    and removed from a cluster, and customized before installation. Variants
    exist per overlay family (plain NodePort, custom PCCS, IBM SE) so call
    sites never branch on the overlay kind.
    """

    def apply(self) -> None:
        """Install the overlay into the cluster."""
        ...

    def delete(self) -> None:
        """Remove the overlay's resources from the cluster."""
        ...

    def edit(self, props: Optional[Dict[str, str]] = None) -> None:
        """Customize the overlay files before installation.

        Args:
            props: Free-form properties (e.g. image overrides). Unknown keys
                   are ignored.
        """
        ...
