"""Synchronous runner for external process collaborators.

Every external tool the provisioner drives (uname, tar, scp, ssh, kubectl,
kbs-client) goes through ``run_command`` so that output capture, logging and
error wrapping behave the same everywhere.
"""

import logging
import os
import subprocess
from typing import Dict, List, Optional

from kbsprov.core.errors import CommandError

logger = logging.getLogger(__name__)


def run_command(
    args: List[str],
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> str:
    """Run a command to completion and return its combined output.

    Args:
        args: Argument list, first element is the executable
        cwd: Working directory for the process (default: current directory)
        env: Extra environment variables merged over ``os.environ``
        timeout: Seconds before the process is killed (default: no limit)

    Returns:
        Combined stdout and stderr decoded as text

    Raises:
        CommandError: If the executable is missing, times out or exits non-zero
    """
    process_env = None
    if env:
        process_env = dict(os.environ)
        process_env.update(env)

    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            env=process_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise CommandError(f"{args[0]} executable not found", command=args) from e
    except subprocess.TimeoutExpired as e:
        output = e.output or ""
        if isinstance(output, bytes):
            output = output.decode("utf-8", errors="replace")
        raise CommandError(
            f"{args[0]} timed out after {timeout}s", command=args, output=output
        ) from e

    output = result.stdout or ""
    logger.debug(f"{' '.join(args)}, output: {output}")

    if result.returncode != 0:
        raise CommandError(
            f"{args[0]} exited with status {result.returncode}: {output.strip()}",
            command=args,
            returncode=result.returncode,
            output=output,
        )
    return output


def get_hardware_platform() -> str:
    """Return the host CPU architecture as reported by ``uname -m``."""
    return run_command(["uname", "-m"]).strip()
