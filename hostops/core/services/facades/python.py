"""
Python 3 runtime facade.
"""

from __future__ import annotations

from hostops.core.models.host import DistroFamily
from hostops.core.models.service import ServiceDescriptor, VersionPattern, standard_probes
from hostops.core.models.status import SoftwareStatus
from hostops.core.models.versions import (
    AlternativesSwitch,
    BinaryGlob,
    SymlinkSwitch,
    UpdateAlternatives,
)
from hostops.core.services.facades.base import Runtime, ServiceFacade

PYTHON = ServiceDescriptor(
    id="python",
    display_name="Python",
    binary_names=("python3",),
    probes=standard_probes(
        binaries=("python3",),
        units=(),
        paths=("/usr/bin/python3", "/usr/local/bin/python3"),
        package_pattern="python3",
    ),
    version_command="python3 --version 2>&1 | head -1",
    version_patterns=(
        VersionPattern(r"Python (\d+\.\d+\.\d+)", label="python"),
        VersionPattern(r"(\d+\.\d+\.\d+)"),
    ),
    package_pattern="python3",
    packages={
        DistroFamily.DEBIAN: ("python3", "python3-pip"),
        DistroFamily.RHEL: ("python3", "python3-pip"),
        DistroFamily.ARCH: ("python", "python-pip"),
        DistroFamily.SUSE: ("python3", "python3-pip"),
    },
    aliases=("python3", "pip", "pip3"),
)


class Python(ServiceFacade, Runtime):
    descriptor = PYTHON
    version_detection = (
        UpdateAlternatives("python3"),
        BinaryGlob("python3.*"),
    )
    version_switching = (
        AlternativesSwitch("python3", "/usr/bin", target="/usr/bin/python{VERSION}"),
        SymlinkSwitch("/usr/bin/python3", "/usr/bin/python{VERSION}"),
    )

    def package_manager_status(self) -> SoftwareStatus:
        """pip3."""
        return self._tool_status("pip3 --version 2>/dev/null", r"pip (\d+(?:\.\d+)+)")
