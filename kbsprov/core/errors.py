"""KBSProv exceptions for error handling."""

from typing import List, Optional


class KbsProvisionError(Exception):
    """Base class for every failure raised by the provisioner."""


class ProvisionError(KbsProvisionError):
    """Raised when local provisioning fails.

    This covers file-system failures while writing the secret, the keypair
    or overlay configuration files, and key generation/encoding failures.

    Attributes:
        message: Description of the failure
        path: The file being written when the failure happened (optional)
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class CommandError(KbsProvisionError):
    """Raised when an external process exits non-zero or cannot be started.

    Attributes:
        message: Description of the failure
        command: The argument list that was executed
        returncode: Process exit status (None if the process never started)
        output: Combined stdout/stderr captured from the process
    """

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command or [])
        self.returncode = returncode
        self.output = output


class StagingError(KbsProvisionError):
    """Raised when staging files on a remote worker node fails.

    Attributes:
        message: Description of the failure
        step: Which stage failed ("compress", "transfer" or "decompress")
    """

    def __init__(self, message: str, step: str) -> None:
        super().__init__(message)
        self.step = step


class EndpointError(KbsProvisionError):
    """Raised when the KBS endpoint cannot be resolved.

    Covers the deployment availability timeout, a missing or non-NodePort
    service, a service without ports, and a missing or ambiguous pod/node.
    """
