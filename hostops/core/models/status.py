"""
Software status: the UI-facing answer to "what state is X in?".

A SoftwareStatus is recomputed on every query and never mutated.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class SoftwareState(StrEnum):
    """Tag of the SoftwareStatus variant."""

    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"
    UNKNOWN = "unknown"


# Shown when a product is installed but no version could be parsed
VERSION_PLACEHOLDER = "installed"


class SoftwareStatus(BaseModel):
    """Tagged status: NotInstalled | Installed(v) | Running(v) | Stopped(v) | Error(msg) | Unknown."""

    model_config = ConfigDict(frozen=True)

    state: SoftwareState
    version: str | None = None
    message: str | None = None

    # ── Constructors ────────────────────────────────────────────

    @classmethod
    def not_installed(cls) -> SoftwareStatus:
        return cls(state=SoftwareState.NOT_INSTALLED)

    @classmethod
    def installed(cls, version: str | None = None) -> SoftwareStatus:
        return cls(state=SoftwareState.INSTALLED, version=version)

    @classmethod
    def running(cls, version: str | None = None) -> SoftwareStatus:
        return cls(state=SoftwareState.RUNNING, version=version)

    @classmethod
    def stopped(cls, version: str | None = None) -> SoftwareStatus:
        return cls(state=SoftwareState.STOPPED, version=version)

    @classmethod
    def error(cls, message: str) -> SoftwareStatus:
        return cls(state=SoftwareState.ERROR, message=message or "Unknown error")

    @classmethod
    def unknown(cls) -> SoftwareStatus:
        return cls(state=SoftwareState.UNKNOWN)

    # ── Queries ─────────────────────────────────────────────────

    @property
    def is_installed(self) -> bool:
        return self.state in (
            SoftwareState.INSTALLED,
            SoftwareState.RUNNING,
            SoftwareState.STOPPED,
        )

    @property
    def is_running(self) -> bool:
        return self.state == SoftwareState.RUNNING

    @property
    def display_version(self) -> str:
        return self.version or VERSION_PLACEHOLDER

    @property
    def display_text(self) -> str:
        if self.state == SoftwareState.NOT_INSTALLED:
            return "Not Installed"
        if self.state == SoftwareState.INSTALLED:
            return self._versioned()
        if self.state == SoftwareState.RUNNING:
            return f"{self._versioned()} • Running"
        if self.state == SoftwareState.STOPPED:
            return f"{self._versioned()} • Stopped"
        if self.state == SoftwareState.ERROR:
            return f"Error: {self.message}"
        return "Unknown"

    def _versioned(self) -> str:
        return f"v{self.version}" if self.version else "Installed"

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "version": self.version,
            "message": self.message,
            "display": self.display_text,
        }
