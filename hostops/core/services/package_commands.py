"""
Package manager command builder.

Builds shell command strings for apt, dnf, yum, pacman and zypper.
Nothing here executes anything. Package names are shell-quoted and
never dropped; an empty package list is a programming error.
"""

from __future__ import annotations

import shlex

from hostops.core.models.host import PackageManager

# ── Per-dialect command fragments ───────────────────────────────

_INSTALL: dict[PackageManager, str] = {
    PackageManager.APT:    "sudo apt-get install -y",
    PackageManager.DNF:    "sudo dnf install -y -q",
    PackageManager.YUM:    "sudo yum install -y -q",
    PackageManager.PACMAN: "sudo pacman -S --noconfirm --needed",
    PackageManager.ZYPPER: "sudo zypper --non-interactive install",
}

# Package index refresh
_UPDATE: dict[PackageManager, str] = {
    PackageManager.APT:    "sudo apt-get update",
    PackageManager.DNF:    "sudo dnf makecache -q",
    PackageManager.YUM:    "sudo yum makecache -q",
    PackageManager.PACMAN: "sudo pacman -Sy --noconfirm",
    PackageManager.ZYPPER: "sudo zypper --non-interactive refresh",
}

_REMOVE: dict[PackageManager, str] = {
    PackageManager.APT:    "sudo apt-get remove -y",
    PackageManager.DNF:    "sudo dnf remove -y -q",
    PackageManager.YUM:    "sudo yum remove -y -q",
    PackageManager.PACMAN: "sudo pacman -R --noconfirm",
    PackageManager.ZYPPER: "sudo zypper --non-interactive remove",
}

_PURGE: dict[PackageManager, str] = {
    **_REMOVE,
    PackageManager.APT: "sudo apt-get purge -y",
    PackageManager.PACMAN: "sudo pacman -Rns --noconfirm",
}

# Each query prints the number of matching installed packages
_QUERY: dict[PackageManager, str] = {
    PackageManager.APT:    "dpkg -l 2>/dev/null | grep -E '^ii\\s+({pattern})(:\\S+)?\\s' | wc -l",
    PackageManager.DNF:    "rpm -qa 2>/dev/null | grep -E '^({pattern})-[0-9]' | wc -l",
    PackageManager.YUM:    "rpm -qa 2>/dev/null | grep -E '^({pattern})-[0-9]' | wc -l",
    PackageManager.PACMAN: "pacman -Q 2>/dev/null | grep -E '^({pattern})\\s' | wc -l",
    PackageManager.ZYPPER: "rpm -qa 2>/dev/null | grep -E '^({pattern})-[0-9]' | wc -l",
}

# Prints the version of each installed package matching the pattern
_RPM_VERSIONS = "rpm -qa --qf '%{{NAME}} %{{VERSION}}\\n' 2>/dev/null | grep -E '^({pattern})\\s' | awk '{{print $2}}'"

_LIST_VERSIONS: dict[PackageManager, str] = {
    PackageManager.APT:    "dpkg -l 2>/dev/null | grep -E '^ii\\s+({pattern})' | awk '{{print $3}}'",
    PackageManager.DNF:    _RPM_VERSIONS,
    PackageManager.YUM:    _RPM_VERSIONS,
    PackageManager.PACMAN: "pacman -Q 2>/dev/null | grep -E '^({pattern})\\s' | awk '{{print $2}}'",
    PackageManager.ZYPPER: _RPM_VERSIONS,
}


def _join(packages: list[str] | tuple[str, ...]) -> str:
    if not packages:
        raise ValueError("At least one package name is required")
    return " ".join(shlex.quote(p) for p in packages)


def install_command(
    packages: list[str] | tuple[str, ...],
    manager: PackageManager,
    with_update: bool = True,
) -> str:
    """Build the command that installs ``packages``.

    With ``with_update`` the index refresh runs first and its failure
    is ignored::

        sudo apt-get update || true && sudo apt-get install -y nginx
    """
    install = f"{_INSTALL[manager]} {_join(packages)}"
    if with_update:
        return f"{_UPDATE[manager]} || true && {install}"
    return install


def update_command(manager: PackageManager) -> str:
    return _UPDATE[manager]


def remove_command(
    packages: list[str] | tuple[str, ...],
    manager: PackageManager,
    purge: bool = False,
) -> str:
    table = _PURGE if purge else _REMOVE
    return f"{table[manager]} {_join(packages)}"


def query_installed_command(pattern: str, manager: PackageManager) -> str:
    """Command printing how many installed packages match ``pattern`` (an ERE)."""
    return _QUERY[manager].format(pattern=pattern)


def list_package_versions_command(pattern: str, manager: PackageManager) -> str:
    """Command printing version strings of installed packages matching ``pattern``."""
    return _LIST_VERSIONS[manager].format(pattern=pattern)
