"""Admin keypair and sample secret provisioning.

The KBS is configured with an Ed25519 admin public key; the matching private
key authenticates kbs-client calls. Keys are generated only once per trustee
checkout: an existing public key file is never rotated.
"""

import logging
import os
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from kbsprov.core.errors import ProvisionError

logger = logging.getLogger(__name__)

SECRET_CONTENT_PREFIX = "This is my cluster name: "


def save_to_file(path: Path, content: bytes, mode: int = 0o644) -> None:
    """Write ``content`` to ``path`` with permissions ``mode``.

    A new file is created with ``mode`` already applied, so its content is
    never readable under looser permissions; an existing file is truncated
    and has its mode reset.

    Raises:
        ProvisionError: If the file cannot be written
    """
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), mode)
            f.write(content)
    except OSError as e:
        raise ProvisionError(f"writing contents to file {path}: {e}", path=str(path)) from e


def write_secret(path: Path, cluster_name: str) -> None:
    """Write the sample workload secret served by the KBS."""
    logger.info(f"creating {path.name}")
    save_to_file(path, f"{SECRET_CONTENT_PREFIX}{cluster_name}".encode("utf-8"))


def generate_keypair() -> ed25519.Ed25519PrivateKey:
    """Generate a new Ed25519 private key."""
    return ed25519.Ed25519PrivateKey.generate()


def encode_keypair(private_key: ed25519.Ed25519PrivateKey):
    """Encode a keypair as PEM.

    Returns:
        Tuple of (PKCS8 private key PEM, SubjectPublicKeyInfo public key PEM)
    """
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


def ensure_keypair(private_key_path: Path, public_key_path: Path) -> bool:
    """Create the admin keypair unless the public key already exists.

    Args:
        private_key_path: Where to write the PEM private key
        public_key_path: Where to write the PEM public key

    Returns:
        True if a new keypair was written, False if one already existed

    Raises:
        ProvisionError: If generation, encoding or writing fails
    """
    if public_key_path.exists():
        logger.debug(f"{public_key_path} exists, keeping the existing keypair")
        return False

    logger.info(f"Generating Ed25519 keypair in {public_key_path.parent}")
    try:
        private_pem, public_pem = encode_keypair(generate_keypair())
    except (ValueError, TypeError) as e:
        raise ProvisionError(f"generating Ed25519 key pair: {e}") from e

    save_to_file(private_key_path, private_pem, mode=0o600)
    save_to_file(public_key_path, public_pem)
    return True
