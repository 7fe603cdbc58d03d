"""
OS classifier: maps an os-release ``ID=`` value to a distribution
family and package-manager dialect.

Unknown ids fall back to Debian/apt. Most cloud server images are
Debian-derived, so the fallback is flagged (``recognized=False``)
rather than treated as an error.
"""

from __future__ import annotations

import logging

from hostops.adapters.base import CommandChannel
from hostops.core.models.host import DistroFamily, OSClassification, PackageManager

logger = logging.getLogger(__name__)

_D, _R, _A, _S = DistroFamily.DEBIAN, DistroFamily.RHEL, DistroFamily.ARCH, DistroFamily.SUSE

_KNOWN_IDS: dict[str, tuple[DistroFamily, PackageManager]] = {
    # Debian family
    "ubuntu": (_D, PackageManager.APT),
    "debian": (_D, PackageManager.APT),
    "linuxmint": (_D, PackageManager.APT),
    "pop": (_D, PackageManager.APT),
    "kali": (_D, PackageManager.APT),
    "raspbian": (_D, PackageManager.APT),
    "elementary": (_D, PackageManager.APT),
    # RHEL family
    "fedora": (_R, PackageManager.DNF),
    "rhel": (_R, PackageManager.DNF),
    "almalinux": (_R, PackageManager.DNF),
    "rocky": (_R, PackageManager.DNF),
    "amzn": (_R, PackageManager.DNF),
    "ol": (_R, PackageManager.DNF),
    "centos": (_R, PackageManager.YUM),
    # Arch family
    "arch": (_A, PackageManager.PACMAN),
    "manjaro": (_A, PackageManager.PACMAN),
    "endeavouros": (_A, PackageManager.PACMAN),
    # SUSE family
    "opensuse": (_S, PackageManager.ZYPPER),
    "opensuse-leap": (_S, PackageManager.ZYPPER),
    "opensuse-tumbleweed": (_S, PackageManager.ZYPPER),
    "sles": (_S, PackageManager.ZYPPER),
}

OS_ID_COMMAND = (
    "cat /etc/os-release 2>/dev/null | grep -E '^ID=' | cut -d= -f2 | tr -d '\"'"
)


def normalize_os_id(raw: str) -> str:
    return raw.strip().strip("\"'").lower()


def classify(os_id: str) -> OSClassification:
    """Classify a raw OS id. Pure; never fails."""
    key = normalize_os_id(os_id)

    if not key:
        return OSClassification(
            os_id="",
            family=DistroFamily.UNKNOWN,
            package_manager=PackageManager.APT,
            recognized=False,
        )

    known = _KNOWN_IDS.get(key)
    if known is None:
        return OSClassification(
            os_id=key,
            family=DistroFamily.DEBIAN,
            package_manager=PackageManager.APT,
            recognized=False,
        )

    family, manager = known
    return OSClassification(os_id=key, family=family, package_manager=manager)


def detect_os_id(channel: CommandChannel, timeout: float = 10.0) -> str:
    """Read ``ID=`` from the host's /etc/os-release ("" if unreadable)."""
    result = channel.execute(OS_ID_COMMAND, timeout=timeout)
    lines = result.lines()
    if not lines:
        logger.debug("No os-release ID on %s (exit %d)", channel.name, result.exit_code)
        return ""
    return normalize_os_id(lines[0])


def classify_remote(channel: CommandChannel, timeout: float = 10.0) -> OSClassification:
    """Scrape the host's OS id and classify it."""
    classification = classify(detect_os_id(channel, timeout=timeout))
    if not classification.recognized:
        logger.info(
            "Unrecognized OS id %r on %s, assuming %s/%s",
            classification.os_id, channel.name,
            classification.family.value, classification.package_manager.value,
        )
    return classification
