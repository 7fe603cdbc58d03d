"""
Host classification models: distribution family and package manager.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class DistroFamily(StrEnum):
    DEBIAN = "debian"
    RHEL = "rhel"
    ARCH = "arch"
    SUSE = "suse"
    UNKNOWN = "unknown"


class PackageManager(StrEnum):
    APT = "apt"
    DNF = "dnf"
    YUM = "yum"
    PACMAN = "pacman"
    ZYPPER = "zypper"


class OSClassification(BaseModel):
    """Distribution family + package-manager dialect of one host.

    ``recognized`` is False when the OS id was not in the known table
    and the Debian/apt default was applied.
    """

    model_config = ConfigDict(frozen=True)

    os_id: str = ""
    family: DistroFamily
    package_manager: PackageManager
    recognized: bool = True

    def to_dict(self) -> dict:
        return {
            "os_id": self.os_id,
            "family": self.family.value,
            "package_manager": self.package_manager.value,
            "recognized": self.recognized,
        }
