"""
Shell channels: run commands locally or through the system ``ssh`` client.

Connection setup and authentication are left entirely to ``ssh`` itself
(keys, agent, ~/.ssh/config). These channels only spawn a process,
wait for it with a timeout and fold its output into a CommandResult.
"""

from __future__ import annotations

import logging
import subprocess
import time

from hostops.adapters.base import (
    DEFAULT_TIMEOUT,
    SPAWN_FAILED_EXIT_CODE,
    CommandChannel,
    CommandResult,
)

logger = logging.getLogger(__name__)


def _run_process(argv: list[str], timeout: float) -> CommandResult:
    """Spawn ``argv``, merge stderr into stdout, never raise."""
    start = time.monotonic()
    try:
        proc = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Timed out after %.0fs: %s", timeout, argv[-1])
        return CommandResult.timeout(duration_ms=elapsed_ms)
    except OSError as e:
        logger.debug("Cannot spawn %s: %s", argv[0], e)
        return CommandResult.failure(exit_code=SPAWN_FAILED_EXIT_CODE)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    return CommandResult(
        output=proc.stdout or "",
        exit_code=proc.returncode,
        duration_ms=elapsed_ms,
    )


class LocalShellChannel(CommandChannel):
    """Execute commands on this machine through ``sh -c``.

    Useful for managing the host hostops itself runs on, and for
    trying commands out before pointing hostops at a remote box.
    """

    def __init__(self, shell: str = "/bin/sh"):
        self._shell = shell

    @property
    def name(self) -> str:
        return "local"

    def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        return _run_process([self._shell, "-c", command], timeout)


class SSHChannel(CommandChannel):
    """Execute commands on a remote host via the ``ssh`` binary.

    Args:
        host: Hostname or IP address.
        user: Remote user (default: ssh's own default).
        port: SSH port.
        identity_file: Optional private key path.
        connect_timeout: Seconds ssh may spend establishing the connection.
    """

    def __init__(
        self,
        host: str,
        user: str | None = None,
        port: int = 22,
        identity_file: str | None = None,
        connect_timeout: int = 10,
    ):
        self.host = host
        self.user = user
        self.port = port
        self.identity_file = identity_file
        self.connect_timeout = connect_timeout

    @property
    def name(self) -> str:
        return f"ssh:{self.host}"

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def build_argv(self, command: str) -> list[str]:
        """The full ssh invocation for ``command``."""
        argv = [
            "ssh",
            "-o", "BatchMode=yes",
            "-o", f"ConnectTimeout={self.connect_timeout}",
            "-p", str(self.port),
        ]
        if self.identity_file:
            argv += ["-i", self.identity_file]
        argv += [self.destination, command]
        return argv

    def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        return _run_process(self.build_argv(command), timeout)
