"""
Channel base: the contract between hostops and a remote host.

Every fact hostops knows about a host comes from running a textual
command through a ``CommandChannel`` and reading the text it returns.
The channel has one ``execute`` call returning one result.

Channels NEVER raise. Timeouts, spawn errors and lost connections are
all reported as a failed ``CommandResult`` so that callers can treat
them exactly like a command that ran and exited non-zero.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

# Exit code reported when a command is killed by its timeout (same as coreutils' timeout)
TIMEOUT_EXIT_CODE = 124

# Exit code reported when the command could not be started at all
SPAWN_FAILED_EXIT_CODE = -1

DEFAULT_TIMEOUT = 15.0


class CommandResult(BaseModel):
    """Raw outcome of a single remote command.

    ``output`` interleaves stdout and stderr as one text stream.
    """

    output: str = ""
    exit_code: int = 0
    timed_out: bool = False
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0

    @property
    def text(self) -> str:
        """Output with surrounding whitespace removed."""
        return self.output.strip()

    def lines(self) -> list[str]:
        """Non-empty, stripped output lines."""
        return [ln.strip() for ln in self.output.splitlines() if ln.strip()]

    @classmethod
    def success(cls, output: str = "", **kwargs) -> CommandResult:
        return cls(output=output, exit_code=0, **kwargs)

    @classmethod
    def failure(cls, exit_code: int = 1, output: str = "", **kwargs) -> CommandResult:
        return cls(output=output, exit_code=exit_code, **kwargs)

    @classmethod
    def timeout(cls, duration_ms: int = 0) -> CommandResult:
        """A timed-out command: non-zero exit, empty output."""
        return cls(
            output="",
            exit_code=TIMEOUT_EXIT_CODE,
            timed_out=True,
            duration_ms=duration_ms,
        )


class CommandChannel(ABC):
    """Abstract remote command-execution primitive.

    To add a new transport:
        1. Subclass CommandChannel
        2. Implement name and execute
        3. Pass an instance to HostSession
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs (e.g. 'local', 'ssh:web1')."""

    @abstractmethod
    def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        """Run ``command`` and return its result.

        MUST return within ``timeout`` seconds and MUST never raise.
        A timeout is reported via ``CommandResult.timeout()``.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
