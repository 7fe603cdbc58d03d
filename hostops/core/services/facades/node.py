"""
Node.js runtime facade. Versions come from nvm when present, else from
the system alternatives.
"""

from __future__ import annotations

from hostops.core.models.host import DistroFamily
from hostops.core.models.service import ServiceDescriptor, VersionPattern, standard_probes
from hostops.core.models.status import SoftwareStatus
from hostops.core.models.versions import (
    BinaryGlob,
    UpdateAlternatives,
    VersionManagerSwitch,
    VersionManagerTool,
)
from hostops.core.services.facades.base import Runtime, ServiceFacade

_NVM_CHECK = 'test -s "$HOME/.nvm/nvm.sh"'
_NVM = 'source "$HOME/.nvm/nvm.sh"'

NODE = ServiceDescriptor(
    id="nodejs",
    display_name="Node.js",
    binary_names=("node", "nodejs"),
    probes=standard_probes(
        binaries=("node", "nodejs"),
        units=(),
        paths=("/usr/bin/node", "/usr/local/bin/node"),
        package_pattern="nodejs",
    ),
    version_command="node --version 2>&1 | head -1",
    version_patterns=(VersionPattern(r"v?(\d+\.\d+\.\d+)", label="node"),),
    package_pattern="nodejs",
    packages={
        DistroFamily.DEBIAN: ("nodejs", "npm"),
        DistroFamily.RHEL: ("nodejs", "npm"),
        DistroFamily.ARCH: ("nodejs", "npm"),
        DistroFamily.SUSE: ("nodejs", "npm"),
    },
    aliases=("node", "npm"),
)


class Node(ServiceFacade, Runtime):
    descriptor = NODE
    version_detection = (
        VersionManagerTool(
            tool="nvm",
            list_command=f"bash -c '{_NVM} && nvm ls --no-colors' 2>/dev/null",
            check_command=_NVM_CHECK,
        ),
        UpdateAlternatives("node"),
        BinaryGlob("node[0-9]*"),
    )
    version_switching = (
        VersionManagerSwitch(
            tool="nvm",
            switch_command=(
                f"bash -c '{_NVM} && nvm install {{VERSION}} && nvm alias default {{VERSION}}'"
            ),
            check_command=_NVM_CHECK,
        ),
    )

    def package_manager_status(self) -> SoftwareStatus:
        """npm."""
        return self._tool_status("npm --version 2>/dev/null", r"(\d+\.\d+\.\d+)")
