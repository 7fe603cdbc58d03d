"""
Version-management models: detection/switch strategies, install
progress, and the capability catalog schema.

Strategies are small frozen dataclasses; a product declares an ordered
list of them and the MultiVersionManager dispatches on the type.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Placeholder substituted with the requested version in switch commands
VERSION_TOKEN = "{VERSION}"


# ── Detection strategies ────────────────────────────────────────


@dataclass(frozen=True)
class DirectoryBased:
    """Versions are sub-directories of ``path`` matching ``pattern``."""

    path: str
    pattern: str


@dataclass(frozen=True)
class UpdateAlternatives:
    """Versions are the alternatives registered under ``name``."""

    name: str


@dataclass(frozen=True)
class VersionManagerTool:
    """Versions are listed by a manager tool (nvm, pyenv, ...).

    ``check_command`` must exit 0 when the tool is present; by default
    the tool is looked up on PATH.
    """

    tool: str
    list_command: str
    check_command: str | None = None
    pattern: str = r"v?(\d+\.\d+(?:\.\d+)?)"


@dataclass(frozen=True)
class PackageManagerQuery:
    """Versions are read from installed packages matching ``pattern``."""

    pattern: str


@dataclass(frozen=True)
class BinaryGlob:
    """Versions are suffixes of binaries in /usr/bin matching ``pattern``."""

    pattern: str
    directory: str = "/usr/bin"


VersionDetectionStrategy = (
    DirectoryBased | UpdateAlternatives | VersionManagerTool | PackageManagerQuery | BinaryGlob
)


# ── Switch strategies ───────────────────────────────────────────


@dataclass(frozen=True)
class AlternativesSwitch:
    """``update-alternatives --set binary path/binary<version>``.

    ``target`` overrides the alternative path (``{VERSION}`` is substituted).
    """

    binary: str
    path: str
    target: str | None = None


@dataclass(frozen=True)
class SymlinkSwitch:
    """Point ``from_path`` at ``to_path`` (``{VERSION}`` is substituted)."""

    from_path: str
    to_path: str


@dataclass(frozen=True)
class VersionManagerSwitch:
    """Run ``switch_command`` (``{VERSION}`` is substituted)."""

    tool: str
    switch_command: str
    check_command: str | None = None


@dataclass(frozen=True)
class NoSwitch:
    """The product cannot safely run a different version in place."""

    reason: str


VersionSwitchStrategy = AlternativesSwitch | SymlinkSwitch | VersionManagerSwitch | NoSwitch


# ── Install progress ────────────────────────────────────────────


class InstallPhase(StrEnum):
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    CONFIGURING = "configuring"
    REGISTERED = "registered"


PHASE_PERCENT: dict[InstallPhase, int] = {
    InstallPhase.QUEUED: 0,
    InstallPhase.DOWNLOADING: 10,
    InstallPhase.INSTALLING: 30,
    InstallPhase.CONFIGURING: 80,
    InstallPhase.REGISTERED: 100,
}


class InstallProgress(BaseModel):
    """Advisory progress event emitted during an install."""

    model_config = ConfigDict(frozen=True)

    phase: InstallPhase
    percentage: int = 0
    message: str = ""

    @classmethod
    def at(cls, phase: InstallPhase, message: str = "") -> InstallProgress:
        return cls(phase=phase, percentage=PHASE_PERCENT[phase], message=message)


# ── Capability catalog ──────────────────────────────────────────

# Per OS id: either {variant: command} or an ordered command list
InstallInstruction = dict[str, str] | list[str] | str


class CapabilityVersion(BaseModel):
    """One installable version of a capability."""

    model_config = ConfigDict(extra="ignore")

    version: str
    stability: str | None = None
    release_date: str | None = None
    eol_date: str | None = None
    recommended_usage: str | None = None
    is_default: bool = False
    install_commands: dict[str, InstallInstruction] = Field(default_factory=dict)


class Capability(BaseModel):
    """A catalog entry describing one installable product."""

    model_config = ConfigDict(extra="ignore")

    id: Any = None
    name: str = ""
    slug: str
    icon: str | None = None
    color: str | None = None
    category: str | None = None
    is_enabled: bool = True
    description: str | None = None
    default_version: CapabilityVersion | str | None = None
    versions: list[CapabilityVersion] = Field(default_factory=list)

    def version(self, version: str) -> CapabilityVersion | None:
        """Find a version entry by exact version string."""
        for entry in self.versions:
            if entry.version == version:
                return entry
        default = self.default_version
        if isinstance(default, CapabilityVersion) and default.version == version:
            return default
        return None

    @property
    def version_names(self) -> list[str]:
        return [v.version for v in self.versions]
